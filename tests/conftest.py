"""
Shared fixtures: fake student programs and project suites on disk.
"""

import os
from pathlib import Path

import pytest

from classgrader.local_runner import LocalRunner
from classgrader.models import ProjectSettings, ProjectSuite, TestCaseSpec


PROJECT = "projx"


@pytest.fixture
def write_script():
    """Factory writing an executable /bin/sh script."""

    def _write(path: Path, body: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n" + body, encoding="utf-8")
        path.chmod(0o755)
        return path

    return _write


@pytest.fixture
def make_runner(tmp_path):
    """Factory building a LocalRunner over an in-memory suite."""

    def _make(tests: list[dict], project: str = PROJECT, quiet: bool = True, **settings) -> LocalRunner:
        settings.setdefault("build", "none")
        suite = ProjectSuite(
            project=ProjectSettings(**settings),
            tests=[TestCaseSpec(**tc) for tc in tests],
        )
        return LocalRunner(
            suite=suite,
            project=project,
            tests_path=str(tmp_path / "tests_repo"),
            digital_path="/opt/Digital.jar",
            quiet=quiet,
        )

    return _make


def _live_group_members(pgid: int) -> list[int]:
    """Pids of non-zombie processes in a process group, read from /proc."""
    members = []
    for entry in Path("/proc").iterdir():
        if not entry.name.isdigit():
            continue
        try:
            stat = (entry / "stat").read_text()
        except OSError:
            continue
        # Fields after the parenthesized command name: state ppid pgrp ...
        fields = stat.rsplit(")", 1)[1].split()
        if fields[0] != "Z" and int(fields[2]) == pgid:
            members.append(int(entry.name))
    return members


@pytest.fixture
def group_members():
    if not os.path.isdir("/proc"):
        pytest.skip("needs /proc")
    return _live_group_members
