import string

import pytest

from fakes import NoSleep

from vpsforge.errors import MissingPreconditionError
from vpsforge.utils.passwords import generate_password
from vpsforge.utils.retry import RetryError, retry
from vpsforge.utils.ssh_runner import SSHTarget, connect_ssh


def test_generated_password_shape():
    pw = generate_password()
    assert pw.startswith("lv_")
    body = pw[3:]
    assert len(body) == 12
    assert set(body) <= set(string.ascii_letters + string.digits)


def test_generated_passwords_differ():
    assert len({generate_password() for _ in range(20)}) == 20


def test_short_passwords_refused():
    with pytest.raises(ValueError):
        generate_password(length=4)


def test_retry_returns_after_transient_failures():
    sleep = NoSleep()
    attempts = []

    @retry(retries=3, delay=2, retry_on=(ConnectionError,), sleep=sleep)
    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("reset")
        return "ok"

    assert flaky() == "ok"
    assert sleep.calls == [2, 2]


def test_retry_gives_up_with_cause():
    seen = []

    @retry(retries=2, delay=0, on_retry=lambda n, e: seen.append(n), sleep=NoSleep())
    def always():
        raise TimeoutError("slow")

    with pytest.raises(RetryError) as exc:
        always()
    assert isinstance(exc.value.__cause__, TimeoutError)
    assert seen == [1, 2]


def test_retry_does_not_catch_other_errors():
    @retry(retries=3, delay=0, retry_on=(ConnectionError,), sleep=NoSleep())
    def bad():
        raise KeyError("x")

    with pytest.raises(KeyError):
        bad()


def test_missing_ssh_key_is_a_missing_precondition(tmp_path):
    with pytest.raises(MissingPreconditionError, match="Cannot load SSH key"):
        connect_ssh(SSHTarget("127.0.0.1", pkey_path=tmp_path / "id_nope"))


def test_unparseable_ssh_key_is_a_missing_precondition(tmp_path):
    key = tmp_path / "id_garbage"
    key.write_text("this is not a private key\n")
    with pytest.raises(MissingPreconditionError, match="id_garbage"):
        connect_ssh(SSHTarget("127.0.0.1", pkey_path=key))
