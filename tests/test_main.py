import json
import os
import signal
import subprocess
import sys
import time
from pathlib import Path

import pytest
import yaml

from main import main, parse_students, print_report, repo_label
from classgrader.config_loader import GraderConfig
from classgrader.models import JobResult

MAIN_SCRIPT = Path(__file__).resolve().parent.parent / "main.py"

SUITE = {
    "project": {"build": "none", "timeout": 5},
    "tests": [
        {"name": "01", "input": ["./prog"], "expected": "ok", "rubric": 4},
        {"name": "02", "input": ["./prog", "hi"], "expected": "hi", "rubric": 6},
    ],
}


@pytest.fixture
def course(tmp_path, monkeypatch):
    """A course directory with a config, a tests repo and a projx suite."""
    tests_repo = tmp_path / "tests"
    (tests_repo / "projx").mkdir(parents=True)
    (tests_repo / "projx" / "projx.yml").write_text(yaml.safe_dump(SUITE))

    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.yml").write_text(
        yaml.safe_dump({"test": {"tests_path": str(tests_repo)}, "config": {"students": ["alice", "bob"]}})
    )
    monkeypatch.setenv("GRADE_CONFIG_DIR", str(config_dir))

    root = tmp_path / "course"
    root.mkdir()
    monkeypatch.chdir(root)
    return root


def test_parse_students():
    config = GraderConfig.model_validate({"config": {"students": ["alice"]}})

    assert parse_students("bob, carol,", config) == ["bob", "carol"]
    assert parse_students(None, config) == ["alice"]


def test_repo_label():
    assert repo_label("projx", "alice") == "projx-alice"
    assert repo_label("projx", "alice", "late") == "projx-alice-late"


def test_test_command_grades_current_directory(course, write_script, monkeypatch, capsys):
    submission = course / "projx-alice"
    write_script(submission / "prog", 'echo "${1:-ok}"\n')
    monkeypatch.chdir(submission)

    assert main(["test", "--no-color"]) == 0

    out = capsys.readouterr().out
    assert "01(4/4)" in out and "02(6/6)" in out
    assert "10/10" in out
    assert "Done" in out


def test_test_command_single_case(course, write_script, monkeypatch, capsys):
    submission = course / "projx-alice"
    write_script(submission / "prog", "echo ok\n")
    monkeypatch.chdir(submission)

    assert main(["test", "-n", "01", "--no-color"]) == 0

    out = capsys.readouterr().out
    assert "01(4/4)" in out
    assert "02(" not in out


def test_test_command_missing_suite(course, capsys):
    assert main(["test", "-p", "nope", "--no-color"]) == 1
    assert "File not found" in capsys.readouterr().out


def test_class_command_writes_results_in_roster_order(course, write_script, capsys):
    write_script(course / "projx-carol" / "prog", 'echo "${1:-ok}"\n')
    write_script(course / "projx-alice" / "prog", "echo ok\n")

    code = main(["class", "-p", "projx", "-s", "carol,bob,alice", "-j", "3", "--quiet", "--no-color"])

    assert code == 0
    data = json.loads((course / "projx.json").read_text())
    assert [item["student"] for item in data] == ["carol", "bob", "alice"]
    assert [item["score"] for item in data] == [10, 0, 4]
    assert data[1]["comment"].endswith("does not exist")

    out = capsys.readouterr().out
    assert out.index("projx-carol") < out.index("projx-bob") < out.index("projx-alice")
    assert "Score frequency (n = 3)" in out


def test_class_command_uses_configured_roster(course, write_script):
    write_script(course / "projx-alice" / "prog", "echo ok\n")

    assert main(["class", "-p", "projx", "-j", "1", "--quiet", "--no-color"]) == 0

    data = json.loads((course / "projx.json").read_text())
    assert [item["student"] for item in data] == ["alice", "bob"]


def test_class_command_rejects_bad_jobs(course, capsys):
    assert main(["class", "-p", "projx", "-j", "many", "--no-color"]) == 2
    assert "Invalid --jobs value: many" in capsys.readouterr().out


def test_class_command_with_empty_roster(course, tmp_path, capsys):
    (tmp_path / "config" / "config.yml").write_text(
        yaml.safe_dump({"test": {"tests_path": str(tmp_path / "tests")}})
    )

    assert main(["class", "-p", "projx", "--no-color"]) == 2
    assert "config.students is empty" in capsys.readouterr().out


def test_rollup_command(course, tmp_path, capsys):
    (tmp_path / "tests" / "dates.yml").write_text(
        yaml.safe_dump({"projx": {"dates": [{"suffix": "due", "date": "2025-01-31", "percentage": 1.0}]}})
    )
    (course / "projx-due.json").write_text(json.dumps([{"student": "alice", "score": 7, "comment": "c"}]))

    assert main(["rollup", "-p", "projx"]) == 0

    rolled = json.loads((course / "projx-rollup.json").read_text())
    assert rolled[0]["student"] == "alice"
    assert rolled[0]["score"] == 7.0


def test_print_report_indents_every_line(capsys):
    result = JobResult(label="projx-alice", report=["01(2/2) ", "2/2"])

    print_report(result, indent="  ")
    print_report(JobResult(label="projx-bob"), indent="  ")

    assert capsys.readouterr().out == "  01(2/2) \n  2/2\n"


def test_interrupt_stops_class_run_and_its_programs(course, tmp_path, write_script, group_members):
    suite = dict(SUITE, project={"build": "none", "timeout": 60})
    (tmp_path / "tests" / "projx" / "projx.yml").write_text(yaml.safe_dump(suite))
    students = ["s1", "s2", "s3"]
    for student in students:
        write_script(course / f"projx-{student}" / "prog", "echo $$ > pid\nsleep 30\n")
    pid_files = [course / f"projx-{student}" / "pid" for student in students]

    grader = subprocess.Popen(
        [sys.executable, str(MAIN_SCRIPT), "class", "-p", "projx", "-s", ",".join(students), "-j", "3", "--no-color"],
        cwd=course,
        env=dict(os.environ),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        text=True,
        # SIGINT may be ignored by whatever launched the test run
        preexec_fn=lambda: signal.signal(signal.SIGINT, signal.SIG_DFL),
    )
    try:
        deadline = time.monotonic() + 15
        while not all(p.is_file() and p.read_text().strip() for p in pid_files):
            assert time.monotonic() < deadline, "programs did not start"
            time.sleep(0.05)

        grader.send_signal(signal.SIGINT)
        out, _ = grader.communicate(timeout=15)
    finally:
        if grader.poll() is None:
            grader.kill()
            grader.wait()

    assert grader.returncode == 1
    assert "Grading interrupted by user." in out
    for pid_file in pid_files:
        pgid = int(pid_file.read_text())
        deadline = time.monotonic() + 2
        while group_members(pgid) and time.monotonic() < deadline:
            time.sleep(0.05)
        assert group_members(pgid) == []
