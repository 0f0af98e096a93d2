from __future__ import annotations

import logging
import os
import subprocess
from collections import deque
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import psutil

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessState:
    """Point-in-time view of one named process. Never cached or persisted."""

    name: str
    pids: tuple[int, ...] = ()

    @property
    def alive(self) -> bool:
        return bool(self.pids)

    @property
    def pid(self) -> int | None:
        return self.pids[0] if self.pids else None


@dataclass(frozen=True)
class LaunchSpec:
    command: Sequence[str]
    cwd: str
    log_path: str
    env: Mapping[str, str] = field(default_factory=dict)
    user: str | None = None


class ProcessTable:
    """Finds processes by a substring of their full command line (like `pgrep -f`)."""

    def observe(self, name: str, pattern: str) -> ProcessState:
        own = os.getpid()
        pids: list[int] = []
        for proc in psutil.process_iter(["pid", "cmdline", "status"]):
            try:
                info = proc.info
                if info["pid"] == own or info["status"] == psutil.STATUS_ZOMBIE:
                    continue
                cmdline = " ".join(info["cmdline"] or [])
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if pattern in cmdline:
                pids.append(info["pid"])
        return ProcessState(name=name, pids=tuple(sorted(pids)))

    def terminate(self, state: ProcessState, timeout_s: float) -> None:
        """SIGTERM every pid, escalating to SIGKILL for any still alive after timeout_s."""
        procs: list[psutil.Process] = []
        for pid in state.pids:
            try:
                proc = psutil.Process(pid)
                proc.terminate()
                procs.append(proc)
            except psutil.NoSuchProcess:
                continue
        _, alive = psutil.wait_procs(procs, timeout=timeout_s)
        for proc in alive:
            log.warning("%s pid %s ignored SIGTERM; killing", state.name, proc.pid)
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue


class Launcher:
    """Starts detached background processes with output appended to a log file."""

    def launch(self, spec: LaunchSpec) -> int:
        command = list(spec.command)
        if spec.user and _current_user() != spec.user:
            command = ["sudo", "-u", spec.user, *command]

        env = dict(os.environ)
        env.update(spec.env)

        with open(spec.log_path, "ab") as out:
            proc = subprocess.Popen(
                command,
                cwd=spec.cwd,
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=out,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )
        return proc.pid


def _current_user() -> str | None:
    try:
        return psutil.Process().username()
    except (psutil.Error, KeyError):
        return None


def tail_file(path: str, lines: int) -> list[str]:
    """Return the last `lines` lines of a text file, or [] if it does not exist."""
    if lines <= 0 or not os.path.exists(path):
        return []
    with open(path, encoding="utf-8", errors="replace") as fh:
        return [line.rstrip("\n") for line in deque(fh, maxlen=lines)]
