import socket
import time

import pytest
import requests

from fakes import FakeRunner

from vpsforge.errors import MissingPreconditionError
from vpsforge.net import dns


class FakeResponse:
    def __init__(self, text, status=200):
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"{self.status}")


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = 0

    def get(self, url, timeout=None, headers=None):
        self.calls += 1
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr(time, "sleep", lambda s: None)


def test_detect_external_ip_retries_then_succeeds():
    s = FakeSession([requests.ConnectionError("reset"), FakeResponse("203.0.113.7\n")])
    assert dns.detect_external_ip(session=s) == "203.0.113.7"
    assert s.calls == 2


def test_detect_external_ip_rejects_ipv6_and_gives_up():
    s = FakeSession([FakeResponse("2001:db8::1")] * 3)
    with pytest.raises(MissingPreconditionError, match="external IP"):
        dns.detect_external_ip(session=s)
    assert s.calls == 3


def test_remote_external_ip_uses_target():
    r = FakeRunner().on("curl -4", 0, "198.51.100.4")
    assert dns.remote_external_ip(r) == "198.51.100.4"

    with pytest.raises(MissingPreconditionError):
        dns.remote_external_ip(FakeRunner().on("curl -4", 6, "", "Could not resolve host"))


def test_resolve_ipv4_dedupes_and_handles_nxdomain():
    def resolver(host, port, family, socktype):
        return [
            (family, socktype, 6, "", ("203.0.113.7", 0)),
            (family, socktype, 17, "", ("203.0.113.7", 0)),
            (family, socktype, 6, "", ("203.0.113.8", 0)),
        ]

    assert dns.resolve_ipv4("k3s.example.com", resolver=resolver) == ["203.0.113.7", "203.0.113.8"]

    def nx(*a):
        raise socket.gaierror("Name or service not known")

    assert dns.resolve_ipv4("nope.invalid", resolver=nx) == []
