import subprocess
import sys
import uuid

import httpx
import psutil
import pytest

from scb import health
from scb.processes import LaunchSpec, Launcher, ProcessState, ProcessTable, tail_file


def test_process_state_alive_and_pid():
    assert not ProcessState("x").alive
    assert ProcessState("x").pid is None
    assert ProcessState("x", (7, 9)).pid == 7


@pytest.mark.skipif(sys.platform == "win32", reason="posix process table")
def test_observe_and_terminate_real_process():
    marker = f"scb-test-{uuid.uuid4().hex}"
    proc = subprocess.Popen([sys.executable, "-c", "import time, sys; time.sleep(60)", marker])
    table = ProcessTable()
    try:
        state = table.observe("sleeper", marker)
        assert state.alive
        assert state.pids == (proc.pid,)
        table.terminate(state, timeout_s=10)
        proc.wait(timeout=10)
        assert not table.observe("sleeper", marker).alive
    finally:
        if proc.poll() is None:
            proc.kill()
            proc.wait()


def test_observe_excludes_own_process():
    own = " ".join(psutil.Process().cmdline())
    assert psutil.Process().pid not in ProcessTable().observe("self", own).pids


def test_launcher_appends_output_to_log(tmp_path):
    log_path = tmp_path / "nohup.out"
    log_path.write_text("earlier\n")
    pid = Launcher().launch(
        LaunchSpec(
            command=[sys.executable, "-c", "import os; print(os.environ['SCB_MARK'])"],
            cwd=str(tmp_path),
            log_path=str(log_path),
            env={"SCB_MARK": "launched"},
        )
    )
    try:
        psutil.Process(pid).wait(timeout=30)
    except psutil.NoSuchProcess:
        pass
    assert log_path.read_text() == "earlier\nlaunched\n"


def test_tail_file(tmp_path):
    p = tmp_path / "log"
    p.write_text("".join(f"{i}\n" for i in range(10)))
    assert tail_file(str(p), 3) == ["7", "8", "9"]
    assert tail_file(str(tmp_path / "missing"), 3) == []


def _patch_transport(monkeypatch, handler):
    real = httpx.Client

    def factory(**kw):
        return real(transport=httpx.MockTransport(handler), **kw)

    monkeypatch.setattr(health.httpx, "Client", factory)


def test_check_health_ok(monkeypatch):
    _patch_transport(monkeypatch, lambda req: httpx.Response(200, json={"cluster_name": "c1"}))
    ok, msg, latency = health.check_health("http://localhost:19200")
    assert ok is True
    assert msg == "Cluster c1"
    assert latency is not None


def test_check_health_bad_status(monkeypatch):
    _patch_transport(monkeypatch, lambda req: httpx.Response(503))
    ok, msg, _ = health.check_health("http://localhost:19200")
    assert ok is False
    assert msg == "HTTP 503"


def test_check_health_no_response(monkeypatch):
    def refuse(req):
        raise httpx.ConnectError("refused", request=req)

    _patch_transport(monkeypatch, refuse)
    ok, msg, _ = health.check_health("http://localhost:19200")
    assert ok is False
    assert msg == "No response"
