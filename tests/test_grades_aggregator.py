import json

import pytest

from classgrader.grades_aggregator import (
    GradesAggregator,
    class_json_path,
    load_class_json,
    make_comment,
    write_class_json,
)
from classgrader.models import JobResult, TestCaseResult


def graded(scores, errors=None, build_err=None, student=None):
    """JobResult from (name, rubric, score) triples and a name -> error map."""
    errors = errors or {}
    results = [
        TestCaseResult(test=name, rubric=rubric, score=score, test_err=errors.get(name))
        for name, rubric, score in scores
    ]
    return JobResult(
        label=student or "repo",
        results=results,
        score=sum(r.score for r in results),
        student=student,
        build_err=build_err,
    )


@pytest.mark.parametrize(
    "result, comment",
    [
        (graded([("01", 2, 2), ("02", 3, 3)]), "01(2/2) 02(3/3) 5/5"),
        (graded([("01", 2, 2), ("02", 3, 0)]), "01(2/2) 02(0/3) 2/5"),
        (
            graded([("01", 2, 0), ("02", 3, 3)], errors={"01": "Program timed out (infinite loop?)"}),
            "01(0/2)    Program timed out (infinite loop?)\n02(3/3) 3/5",
        ),
        (
            graded([("01", 2, 2), ("02", 3, 0)], errors={"02": "Program not found (build failed?)"}),
            "01(2/2) 02(0/3)    Program not found (build failed?)\n2/5",
        ),
        (
            graded([("01", 2, 2)], build_err="Makefile not found: repo/Makefile"),
            "Makefile not found: repo/Makefile 01(2/2) 2/2",
        ),
        (graded([], build_err="Program did not make successfully"), "Program did not make successfully 0/0"),
    ],
    ids=["all-pass", "mismatch", "error-first", "error-last", "build-error", "build-error-only"],
)
def test_make_comment(result, comment):
    assert make_comment(result, result.available) == comment


def test_comment_total_uses_full_suite_rubric():
    result = graded([("02", 3, 3)])

    assert make_comment(result, 10) == "02(3/3) 3/10"


def test_class_json_path(tmp_path):
    assert class_json_path("projx", output_dir=tmp_path) == tmp_path / "projx.json"
    assert class_json_path("projx", "late", tmp_path) == tmp_path / "projx-late.json"


def test_write_and_load_class_json(tmp_path):
    grades = [
        graded([("01", 2, 2)], student="alice"),
        graded([("01", 2, 0)], errors={"01": "IO error: gone"}, student="bob"),
    ]
    grades[0].report = ["not persisted"]

    path = write_class_json(grades, "projx", output_dir=tmp_path)
    data = json.loads(path.read_text())

    assert [item["student"] for item in data] == ["alice", "bob"]
    assert "label" not in data[0] and "report" not in data[0]
    assert "build_err" not in data[0]
    assert data[0]["results"] == [{"rubric": 2, "score": 2, "test": "01"}]
    assert data[1]["results"][0]["test_err"] == "IO error: gone"

    loaded = load_class_json(path)
    assert [g.to_record() for g in loaded] == [g.to_record() for g in grades]
    assert loaded[0].label == "alice"


def test_aggregator_saves_in_roster_order(tmp_path):
    aggregator = GradesAggregator("projx", output_dir=tmp_path)
    for student in ["carol", "alice", "bob"]:
        aggregator.add_grade(graded([("01", 1, 1)], student=student))

    path = aggregator.save_all(suffix="due")

    assert path == tmp_path / "projx-due.json"
    assert [item["student"] for item in json.loads(path.read_text())] == ["carol", "alice", "bob"]


def test_histogram(tmp_path, capsys):
    aggregator = GradesAggregator("projx", output_dir=tmp_path)
    aggregator.add_grade(JobResult(label="missing", comment="Local repo x does not exist"))
    for score in [10, 5, 10]:
        aggregator.add_grade(graded([("01", 5, min(score, 5)), ("02", 5, max(score - 5, 0))]))

    assert aggregator.histogram_lines() == [
        "Score frequency (n = 4)",
        "10/10: 2  (50.0%)",
        "5/10: 1  (25.0%)",
        "0/10: 1  (25.0%)",
    ]
    aggregator.print_histogram()
    assert "Score frequency (n = 4)" in capsys.readouterr().out
