# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/vpsforge/provisioning/vps.py

from __future__ import annotations

from typing import List

from vpsforge.config import defaults as d
from vpsforge.config.models import VpsAnswers
from vpsforge.errors import CommandFailedError, MissingPreconditionError, ProvisionWarning
from vpsforge.execution.files import ensure_dir, q, read_text, write_text
from vpsforge.steps import checks
from vpsforge.steps.checks import classify
from vpsforge.steps.models import Probe, Step

from .context import ProvisionContext
from .hosts import ensure_hosts_entry, has_hosts_entry
from .sshd import harden_sshd_config, includes_before, is_hardened, password_auth_enabled
from .zsh import ALIAS_BEGIN, ensure_aliases, has_theme, set_theme


def home_of(user: str) -> str:
    return f"/home/{user}"


def sudoers_line(user: str) -> str:
    return f"{user} ALL=(ALL) NOPASSWD:ALL"


# ------------------------------------------------------------------------------
# Probes specific to this plan
# ------------------------------------------------------------------------------

def root_password_locked(ctx: ProvisionContext) -> bool:
    r = ctx.runner.execute("passwd -S root", sudo=True)
    if not r.ok:
        classify(r, {}, "root password status")
    fields = r.stdout.split()
    return len(fields) > 1 and fields[1] in ("L", "LK")


def password_login_disabled(ctx: ProvisionContext) -> bool:
    r = ctx.runner.execute("sshd -T", sudo=True)
    if not r.ok:
        classify(r, {}, "effective sshd settings")
    return not password_auth_enabled(r.stdout)


def firewall_allows_ssh(ctx: ProvisionContext) -> bool:
    r = ctx.runner.execute("ufw status", sudo=True)
    if not r.ok:
        classify(r, {}, "firewall status")
    lines = r.stdout.splitlines()
    active = any(line.strip() == "Status: active" for line in lines)
    allowed = any(
        line.split()[:1] == [d.SSH_PORT_RULE] and "ALLOW" in line
        for line in lines
    )
    return active and allowed


# ------------------------------------------------------------------------------
# Actions
# ------------------------------------------------------------------------------

def require_root_ssh_key(ctx: ProvisionContext) -> None:
    present = checks.file_nonempty(d.ROOT_AUTHORIZED_KEYS)(ctx)
    if not present:
        raise MissingPreconditionError(
            f"No SSH keys found in {d.ROOT_AUTHORIZED_KEYS}. Add your public key "
            "there before running, or you will be locked out once password login is disabled."
        )


def set_hostname(ctx: ProvisionContext) -> None:
    ctx.runner.execute(f"hostnamectl set-hostname {q(ctx.vps.domain)}", sudo=True).check("hostnamectl")


def write_hosts_entry(ctx: ProvisionContext) -> None:
    a = ctx.vps
    current = read_text(ctx.runner, d.HOSTS_FILE)
    write_text(ctx.runner, d.HOSTS_FILE, ensure_hosts_entry(current, a.domain, a.short_hostname))


def upgrade_packages(ctx: ProvisionContext) -> None:
    ctx.runner.execute(
        "export DEBIAN_FRONTEND=noninteractive; apt-get update && apt-get upgrade -y",
        sudo=True,
    ).check("apt-get upgrade")


def install_packages(ctx: ProvisionContext) -> None:
    pkgs = " ".join(d.BASE_PACKAGES)
    ctx.runner.execute(
        f"export DEBIAN_FRONTEND=noninteractive; apt-get install -y {pkgs}",
        sudo=True,
    ).check("apt-get install")


def create_user(ctx: ProvisionContext) -> None:
    user = q(ctx.vps.new_user)
    ctx.runner.execute(
        f'useradd -m -s "$(command -v zsh)" -G sudo {user} && passwd -d {user}',
        sudo=True,
    ).check("useradd")


def write_sudoers(ctx: ProvisionContext) -> None:
    user = ctx.vps.new_user
    path = f"/etc/sudoers.d/{user}"
    write_text(ctx.runner, path, sudoers_line(user) + "\n", mode=0o440)
    r = ctx.runner.execute(f"visudo -cf {q(path)}", sudo=True)
    if not r.ok:
        # a broken drop-in breaks sudo for everyone
        ctx.runner.execute(f"rm -f {q(path)}", sudo=True)
        r.check("visudo")


def install_authorized_keys(ctx: ProvisionContext) -> None:
    user = ctx.vps.new_user
    ssh_dir = f"{home_of(user)}/.ssh"
    ensure_dir(ctx.runner, ssh_dir, mode=0o700, owner=f"{user}:{user}")
    ctx.runner.execute(
        f"install -m 600 -o {q(user)} -g {q(user)} {d.ROOT_AUTHORIZED_KEYS} {q(ssh_dir + '/authorized_keys')}",
        sudo=True,
    ).check("install authorized_keys")


def harden_sshd(ctx: ProvisionContext) -> None:
    original = read_text(ctx.runner, d.SSHD_CONFIG)
    write_text(ctx.runner, d.SSHD_CONFIG, harden_sshd_config(original))

    r = ctx.runner.execute("sshd -t", sudo=True)
    if not r.ok:
        write_text(ctx.runner, d.SSHD_CONFIG, original)
        raise CommandFailedError(
            f"sshd rejected the hardened config, original restored: {r.stderr.strip()}",
            result=r,
        )
    ctx.runner.execute("systemctl restart ssh", sudo=True).check("restart ssh")

    if not password_login_disabled(ctx):
        sources = ", ".join(includes_before(original)) or "another config file"
        raise ProvisionWarning(
            f"PasswordAuthentication is still enabled: sshd reads {sources} before {d.SSHD_CONFIG}; "
            f"remove the override there"
        )


def lock_root_password(ctx: ProvisionContext) -> None:
    ctx.runner.execute("passwd -l root", sudo=True).check("passwd -l root")


def install_oh_my_zsh(ctx: ProvisionContext) -> None:
    user = q(ctx.vps.new_user)
    r = ctx.runner.execute(
        f'sudo -u {user} -H sh -c "$(curl -fsSL {d.OH_MY_ZSH_INSTALLER})" "" --unattended',
        sudo=True,
    )
    if not r.ok:
        raise ProvisionWarning(
            f"Oh My Zsh installer failed (rc={r.exit_code}); the shell works without it: "
            f"{(r.stderr or r.stdout).strip()[-300:]}"
        )


def configure_zsh_theme(ctx: ProvisionContext) -> None:
    user = ctx.vps.new_user
    path = f"{home_of(user)}/.zshrc"
    theme = ctx.vps.zsh_theme

    if checks.file_exists(path)(ctx):
        content = set_theme(read_text(ctx.runner, path), theme)
    else:
        content = ctx.renderer.render("zshrc.j2", {"theme": theme})
    write_text(ctx.runner, path, content, mode=0o644, owner=f"{user}:{user}")


def add_zsh_aliases(ctx: ProvisionContext) -> None:
    user = ctx.vps.new_user
    path = f"{home_of(user)}/.zshrc"
    content = ensure_aliases(read_text(ctx.runner, path))
    write_text(ctx.runner, path, content, mode=0o644, owner=f"{user}:{user}")


def enable_firewall(ctx: ProvisionContext) -> None:
    ctx.runner.execute(f"ufw allow {d.SSH_PORT_RULE} && ufw --force enable", sudo=True).check("ufw")


# ------------------------------------------------------------------------------
# Plan
# ------------------------------------------------------------------------------

def build_vps_steps(answers: VpsAnswers) -> List[Step]:
    user = answers.new_user
    home = home_of(user)
    zshrc = f"{home}/.zshrc"

    def _zshrc_has_theme(text: str) -> bool:
        return has_theme(text, answers.zsh_theme)

    hostname_set: Probe = checks.command_output_equals("hostname", answers.domain)

    return [
        Step(
            name="require-root-ssh-key",
            action=require_root_ssh_key,
            description="Refuse to continue without a root authorized_keys file",
        ),
        Step(
            name="set-hostname",
            action=set_hostname,
            precondition=hostname_set,
            idempotent=True,
        ),
        Step(
            name="hosts-entry",
            action=write_hosts_entry,
            precondition=checks.file_text_matches(
                d.HOSTS_FILE,
                lambda text: has_hosts_entry(text, answers.domain, answers.short_hostname),
            ),
            idempotent=True,
        ),
        Step(name="upgrade-packages", action=upgrade_packages),
        Step(
            name="install-packages",
            action=install_packages,
            precondition=checks.packages_installed(d.BASE_PACKAGES),
            idempotent=True,
        ),
        Step(
            name="create-user",
            action=create_user,
            precondition=checks.user_exists(user),
            idempotent=True,
        ),
        Step(
            name="sudoers-drop-in",
            action=write_sudoers,
            precondition=checks.file_contains_line(f"/etc/sudoers.d/{user}", sudoers_line(user)),
            idempotent=True,
        ),
        Step(
            name="authorized-keys",
            action=install_authorized_keys,
            precondition=checks.files_identical(d.ROOT_AUTHORIZED_KEYS, f"{home}/.ssh/authorized_keys"),
            idempotent=True,
        ),
        Step(
            name="harden-sshd",
            action=harden_sshd,
            precondition=checks.all_of(
                checks.file_text_matches(d.SSHD_CONFIG, is_hardened),
                password_login_disabled,
            ),
            idempotent=True,
        ),
        Step(
            name="lock-root-password",
            action=lock_root_password,
            precondition=root_password_locked,
            idempotent=True,
        ),
        Step(
            name="install-oh-my-zsh",
            action=install_oh_my_zsh,
            precondition=checks.dir_exists(f"{home}/.oh-my-zsh"),
            idempotent=True,
        ),
        Step(
            name="zsh-theme",
            action=configure_zsh_theme,
            precondition=checks.file_text_matches(zshrc, _zshrc_has_theme),
            idempotent=True,
        ),
        Step(
            name="zsh-aliases",
            action=add_zsh_aliases,
            precondition=checks.file_contains_line(zshrc, ALIAS_BEGIN),
            idempotent=True,
        ),
        Step(
            name="firewall",
            action=enable_firewall,
            precondition=firewall_allows_ssh,
            idempotent=True,
        ),
    ]
