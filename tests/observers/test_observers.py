import json
import logging
from pathlib import Path

from fakes import Capture

from vpsforge.logging.log import init_logging
from vpsforge.observers.dispatcher import EventBus
from vpsforge.observers.events import StepFailed, StepSucceeded, new_ctx
from vpsforge.observers.jsonfile import JsonFileObserver
from vpsforge.observers.logger import LoggerObserver


class Broken:
    def notify(self, ev):
        raise RuntimeError("disk full")


def test_failing_observer_does_not_stop_the_others():
    cap = Capture()
    bus = EventBus([Broken(), cap])
    bus.emit(StepSucceeded(name="firewall", duration_ms=12, **new_ctx("vps", "localhost")))
    assert cap.kinds() == ["StepSucceeded"]


def test_jsonfile_observer_appends_one_object_per_line(tmp_path: Path):
    path = tmp_path / "logs" / "run.jsonl"
    ob = JsonFileObserver(path)
    ctx = new_ctx("k3s", "root@203.0.113.7", run_id="r1")
    ob.notify(StepSucceeded(name="install-k3s", duration_ms=5, **ctx))
    ob.notify(StepFailed(name="cert-manager", kind="HelmError", error="timeout", **ctx))

    rows = [json.loads(line) for line in path.read_text().splitlines()]
    assert [r["type"] for r in rows] == ["StepSucceeded", "StepFailed"]
    assert rows[1]["kind"] == "HelmError"
    assert all(r["run_id"] == "r1" and r["plan"] == "k3s" for r in rows)


def test_logger_observer_logs_debug(caplog):
    logger = logging.getLogger("vpsforge.test")
    with caplog.at_level(logging.DEBUG, logger="vpsforge.test"):
        LoggerObserver(logger).notify(StepSucceeded(name="firewall", duration_ms=1, **new_ctx("vps", "localhost")))
    assert "[EVENT] StepSucceeded" in caplog.text
    assert "name=firewall" in caplog.text


def test_init_logging_creates_run_log(tmp_path: Path):
    logger, run_id, log_path = init_logging(base_dir=tmp_path, name="vpsforge-test")
    logger.debug("$ hostnamectl set-hostname vps.example.com")
    for h in logger.handlers:
        h.flush()

    assert log_path.parent == tmp_path
    assert run_id in log_path.name
    text = log_path.read_text()
    assert "run_id=" in text
    assert "hostnamectl" in text
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)
