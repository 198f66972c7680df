import pytest

from fakes import FakeRunner

from vpsforge.errors import CommandFailedError, ProbeError
from vpsforge.kube.kubectl import KubectlRunner
from vpsforge.provisioning.postgres import PostgresAdmin
from vpsforge.provisioning.template_renderer import TemplateRenderer, sql_ident, sql_literal


def _admin(runner):
    return PostgresAdmin(KubectlRunner(runner=runner), namespace="postgres")


def test_sql_quoting():
    assert sql_ident("my-app") == '"my-app"'
    assert sql_ident('we"ird') == '"we""ird"'
    assert sql_literal("it's") == "'it''s'"


def test_role_template_quotes_identifier_and_password():
    sql = TemplateRenderer().render(
        "postgres/create_role.sql.j2",
        {"db_user": "my-app", "db_password": "p'w"},
    )
    assert sql.strip() == "CREATE ROLE \"my-app\" WITH LOGIN PASSWORD 'p''w';"


def test_privileges_template_enables_timescaledb():
    sql = TemplateRenderer().render(
        "postgres/privileges.sql.j2",
        {"db_user": "app", "db_name": "appdb", "db_password": "x"},
    )
    assert 'GRANT ALL PRIVILEGES ON DATABASE "appdb" TO "app";' in sql
    assert "CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE;" in sql


def test_run_template_sends_sql_on_stdin_only():
    r = FakeRunner()
    _admin(r).run_template(
        "postgres/set_password.sql.j2",
        {"db_user": "app", "db_password": "lv_topsecret"},
    )
    call = r.calls[0]
    assert "kubectl exec -i deployment/postgres -n postgres -- psql -U postgres -v ON_ERROR_STOP=1" in call.command
    assert "lv_topsecret" not in call.command
    assert "lv_topsecret" in call.stdin


def test_run_template_failure_does_not_leak_password():
    r = FakeRunner().on("psql", 3, "", 'ERROR:  role "app" does not exist')
    with pytest.raises(CommandFailedError) as exc:
        _admin(r).run_template(
            "postgres/set_password.sql.j2",
            {"db_user": "app", "db_password": "lv_topsecret"},
        )
    assert "lv_topsecret" not in str(exc.value)
    assert exc.value.result is None


def test_role_exists_reads_catalog():
    r = FakeRunner().on("psql", 0, "1\n")
    assert _admin(r).role_exists("app") is True
    assert "rolname = 'app'" in r.calls[0].stdin

    r = FakeRunner().on("psql", 0, "\n")
    assert _admin(r).database_exists("appdb") is False


def test_role_exists_raises_when_psql_fails():
    r = FakeRunner().on("psql", 2, "", "could not connect to server")
    with pytest.raises(ProbeError):
        _admin(r).role_exists("app")


def test_accepting_connections():
    assert _admin(FakeRunner().on("SELECT 1", 0, "1\n")).accepting_connections() is True
    assert _admin(FakeRunner().on("SELECT 1", 2, "", "starting up")).accepting_connections() is False
