"""Converge the search service and the capture sidecar on one node.

Goal state: the search service listens on the internal port and the capture
sidecar listens on the advertised port, forwarding to the service.

Safe to run again at any time (boot, or an operator re-run). Nothing is
persisted: every step re-reads the process table and the config file. Two
invocations running at the same moment can both see the same stale pid and
both stop and relaunch; there is no lock file, so do not run it concurrently.

No retries, no backoff, no rollback of the service when the sidecar fails.
"""
from __future__ import annotations

import argparse
import enum
import logging
import os
import re
import sys
import time
from typing import Callable

from .errors import SupervisorError
from .health import check_health
from .logging_config import setup_logging
from .processes import LaunchSpec, Launcher, ProcessState, ProcessTable, tail_file
from .settings import Settings, settings as default_settings

log = logging.getLogger(__name__)

SERVICE = "search service"
SIDECAR = "capture proxy"

_PORT_LINE_RE = re.compile(r"^[ \t]*http\.port[ \t]*:[ \t]*(\S*)[ \t]*$", re.MULTILINE)


class PortEdit(str, enum.Enum):
    UNCHANGED = "unchanged"
    APPENDED = "appended"
    REPLACED = "replaced"


class Action(str, enum.Enum):
    NOOP = "noop"
    START_SERVICE = "start-service"
    START_SIDECAR = "start-sidecar"
    RESTART_SERVICE = "restart-service"


def decide(service_alive: bool, sidecar_alive: bool, port_ok: bool) -> Action:
    if service_alive and sidecar_alive:
        return Action.NOOP
    if not service_alive:
        return Action.START_SERVICE
    if port_ok:
        return Action.START_SIDECAR
    return Action.RESTART_SERVICE


def configured_ports(text: str) -> list[str]:
    return _PORT_LINE_RE.findall(text)


def ensure_http_port(path: str, port: int) -> PortEdit:
    """Make every `http.port` entry in the config file equal `port`.

    Absent: appended. Different: replaced in place. Equal: file untouched.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            text = fh.read()
    except OSError as e:
        raise SupervisorError(f"Cannot read config file {path}: {e}") from e

    wanted = str(port)
    found = configured_ports(text)
    if found and all(v == wanted for v in found):
        log.info("Correct http.port already exists: http.port: %s", wanted)
        return PortEdit.UNCHANGED

    if not found:
        log.info("Appending 'http.port: %s' to %s", wanted, os.path.basename(path))
        if text and not text.endswith("\n"):
            text += "\n"
        text += f"http.port: {wanted}\n"
        edit = PortEdit.APPENDED
    else:
        log.info("Replacing existing http.port: %s", ", ".join(found))
        text = _PORT_LINE_RE.sub(f"http.port: {wanted}", text)
        edit = PortEdit.REPLACED

    try:
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(text)
    except OSError as e:
        raise SupervisorError(f"Cannot rewrite config file {path}: {e}") from e
    return edit


class Supervisor:
    def __init__(
        self,
        kafka_endpoints: str,
        cfg: Settings | None = None,
        table: ProcessTable | None = None,
        launcher: Launcher | None = None,
        sleep: Callable[[float], None] = time.sleep,
        probe: Callable[[str], tuple[bool, str, float | None]] = check_health,
    ):
        self.kafka_endpoints = kafka_endpoints
        self.cfg = cfg or default_settings
        self.table = table or ProcessTable()
        self.launcher = launcher or Launcher()
        self.sleep = sleep
        self.probe = probe

    def observe_service(self) -> ProcessState:
        return self.table.observe(SERVICE, self.cfg.service_pattern)

    def observe_sidecar(self) -> ProcessState:
        return self.table.observe(SIDECAR, self.cfg.sidecar_pattern)

    def service_spec(self) -> LaunchSpec:
        return LaunchSpec(
            command=["./bin/elasticsearch"],
            cwd=self.cfg.service_dir,
            log_path=os.path.join(self.cfg.service_dir, "nohup.out"),
            user=self.cfg.service_user,
        )

    def sidecar_spec(self) -> LaunchSpec:
        command = [
            "./trafficCaptureProxyServer",
            "--kafkaConnection",
            self.kafka_endpoints,
            "--destinationUri",
            f"http://localhost:{self.cfg.internal_port}",
            "--listenPort",
            str(self.cfg.listen_port),
        ]
        if self.cfg.msk_auth:
            command.append("--enableMSKAuth")
        command.append("--insecureDestination")
        return LaunchSpec(
            command=command,
            cwd=self.cfg.sidecar_dir,
            log_path=os.path.join(self.cfg.sidecar_dir, "nohup.out"),
            env={"JAVA_HOME": self.cfg.java_home},
        )

    def _report(self, state: ProcessState) -> None:
        if state.alive:
            log.info("%s process PID: %s", state.name.capitalize(), " ".join(map(str, state.pids)))
        else:
            log.info("No running %s process detected", state.name)

    def _launch(self, name: str, spec: LaunchSpec) -> bool:
        try:
            pid = self.launcher.launch(spec)
        except OSError as e:
            log.error("Failed to start %s: %s", name, e)
            return False
        log.info("Started %s (pid %s)", name, pid)
        return True

    def _stop(self, state: ProcessState) -> None:
        if state.alive:
            log.info("Stopping running %s process", state.name)
            self.table.terminate(state, self.cfg.stop_timeout_s)

    def run(self) -> int:
        service = self.observe_service()
        self._report(service)
        sidecar = self.observe_sidecar()
        self._report(sidecar)

        if decide(service.alive, sidecar.alive, port_ok=True) is Action.NOOP:
            log.info("Both %s and %s processes are running, no actions will be performed.", SERVICE, SIDECAR)
            return 0

        try:
            edit = ensure_http_port(self.cfg.config_path, self.cfg.internal_port)
        except SupervisorError as e:
            log.error("%s", e)
            return 1

        action = decide(service.alive, sidecar.alive, port_ok=edit is PortEdit.UNCHANGED)
        if action is Action.START_SERVICE:
            log.info("Starting %s process", SERVICE)
            self._launch(SERVICE, self.service_spec())
        elif action is Action.RESTART_SERVICE:
            log.info("Restarting %s process", SERVICE)
            self._stop(self.observe_service())
            self._launch(SERVICE, self.service_spec())

        return self._converge_sidecar()

    def _converge_sidecar(self) -> int:
        self._stop(self.observe_sidecar())
        log.info("Starting %s process", SIDECAR)
        spec = self.sidecar_spec()
        self._launch(SIDECAR, spec)

        self.sleep(self.cfg.grace_period_s)
        if not self.observe_sidecar().alive:
            log.error("%s appears to have encountered issue on startup", SIDECAR.capitalize())
            tail = tail_file(spec.log_path, self.cfg.log_tail_lines)
            if tail:
                log.error("%s final log statements:\n%s", SIDECAR.capitalize(), "\n".join(tail))
            return 1

        ok, msg, _ = self.probe(f"http://localhost:{self.cfg.internal_port}")
        if ok:
            log.info("%s responding on port %s (%s)", SERVICE, self.cfg.internal_port, msg)
        else:
            log.info("%s not answering on port %s yet (%s)", SERVICE, self.cfg.internal_port, msg)
        log.info("Completed capture proxy startup")
        return 0


USAGE = """
Restarts the search node on the internal port and starts the capture proxy on the advertised port

Usage:
  scb-start-capture-proxy <--kafka-endpoints STRING>

Options:
  --kafka-endpoints                     Kafka broker endpoints that captured traffic will be sent to e.g. 'broker1:9092,broker2:9092'.
"""


class UsageError(Exception):
    pass


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise UsageError(message)


def parse_args(argv: list[str]) -> str:
    """Return the Kafka endpoints, or raise UsageError (help included).

    Stray positional arguments are ignored.
    """
    p = _Parser(add_help=False, allow_abbrev=False)
    p.add_argument("--kafka-endpoints")
    p.add_argument("-h", "--help", action="store_true")
    args, extra = p.parse_known_args(argv)

    unknown = [a for a in extra if a.startswith("-")]
    if unknown:
        raise UsageError(f"Unknown option {unknown[0]}")
    if args.help:
        raise UsageError("")
    if not args.kafka_endpoints:
        raise UsageError("Missing required option --kafka-endpoints")
    return args.kafka_endpoints


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        endpoints = parse_args(argv)
    except UsageError as e:
        if str(e):
            print(e)
        print(USAGE)
        return 1

    setup_logging("supervisor")
    return Supervisor(endpoints).run()


if __name__ == "__main__":
    raise SystemExit(main())
