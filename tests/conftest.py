from __future__ import annotations

import os

import pytest

from scb.processes import LaunchSpec, ProcessState
from scb.settings import Settings


class FakeTable:
    """Process table keyed by command-line pattern; records every call."""

    def __init__(self, running: dict[str, list[int]] | None = None):
        self.running: dict[str, list[int]] = {k: list(v) for k, v in (running or {}).items()}
        self.observed: list[str] = []
        self.terminated: list[ProcessState] = []

    def observe(self, name: str, pattern: str) -> ProcessState:
        self.observed.append(name)
        return ProcessState(name=name, pids=tuple(self.running.get(pattern, [])))

    def terminate(self, state: ProcessState, timeout_s: float) -> None:
        self.terminated.append(state)
        for pids in self.running.values():
            for pid in state.pids:
                if pid in pids:
                    pids.remove(pid)


class FakeLauncher:
    """Registers launched commands in the fake table unless told they die on start."""

    def __init__(self, table: FakeTable, patterns: list[str], dies_on_start: set[str] | None = None, raises: set[str] | None = None):
        self.table = table
        self.patterns = patterns
        self.dies_on_start = dies_on_start or set()
        self.raises = raises or set()
        self.launched: list[LaunchSpec] = []
        self._next_pid = 1000

    def _pattern(self, spec: LaunchSpec) -> str:
        cmd = " ".join(spec.command)
        for pattern in self.patterns:
            if pattern in cmd:
                return pattern
        raise AssertionError(f"unexpected command {cmd}")

    def launch(self, spec: LaunchSpec) -> int:
        pattern = self._pattern(spec)
        if pattern in self.raises:
            raise FileNotFoundError(spec.command[0])
        self.launched.append(spec)
        self._next_pid += 1
        if pattern not in self.dies_on_start:
            self.table.running.setdefault(pattern, []).append(self._next_pid)
        return self._next_pid


@pytest.fixture()
def node_settings(tmp_path) -> Settings:
    cfg = Settings(node_home=str(tmp_path), service_user=None, grace_period_s=0)
    os.makedirs(os.path.dirname(cfg.config_path), exist_ok=True)
    os.makedirs(cfg.sidecar_dir, exist_ok=True)
    return cfg


@pytest.fixture()
def write_config(node_settings):
    def _write(text: str) -> str:
        with open(node_settings.config_path, "w", encoding="utf-8") as fh:
            fh.write(text)
        return node_settings.config_path

    return _write
