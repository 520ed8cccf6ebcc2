"""
Grades aggregator for collecting and exporting class results.

Writes the class results JSON consumed by gradebook uploads and rollups,
and summarizes the score distribution.
"""

import json
from collections import Counter
from pathlib import Path

from .config import CLASS_JSON_SUFFIX
from .models import JobResult, TestCaseResult
from .utils import format_pass_fail


def make_earned_avail(earned: int, available: int) -> str:
    return f"{earned}/{available}"


def make_comment(result: JobResult, total_rubric: int) -> str:
    """
    Build the summary comment stored with a submission's grade.

    Passing labels run together on one line; each failed execution gets its
    own line with its diagnostic. The build error, if any, leads the comment
    and the earned/available total ends it.

    Args:
        result: Graded submission.
        total_rubric: Points available for the whole suite.

    Returns:
        Comment text, e.g. "01(2/2) 02(0/3) 2/5".
    """
    out = ""
    pass_concat = ""
    prefix = f"{result.build_err} " if result.build_err else ""

    for r in result.results:
        label = format_pass_fail(r.test, r.rubric, r.score)
        if r.test_err:
            # Pending pass labels share the line of the first error
            out += prefix + pass_concat
            pass_concat = ""
            prefix = ""
            out += f"{label.rstrip()}    {r.test_err}\n"
        else:
            pass_concat += label

    earned = make_earned_avail(result.score, total_rubric)
    if pass_concat:
        return out + prefix + pass_concat + earned
    if not out:
        out = prefix
    return out + earned


def class_json_path(project: str, suffix: str | None = None, output_dir: Path = Path(".")) -> Path:
    name = f"{project}-{suffix}" if suffix else project
    return output_dir / f"{name}{CLASS_JSON_SUFFIX}"


class GradesAggregator:
    """
    Aggregates results from a class run and exports them.
    """

    def __init__(self, project: str, output_dir: Path | None = None) -> None:
        """
        Initialize the grades aggregator.

        Args:
            project: Project name, used for the output file name.
            output_dir: Directory to save results. Defaults to the current directory.
        """
        self.project = project
        self.output_dir = output_dir or Path(".")
        self.grades: list[JobResult] = []

    def add_grade(self, grade: JobResult) -> None:
        self.grades.append(grade)

    def save_all(self, suffix: str | None = None) -> Path:
        """
        Save all results, in roster order, as one JSON list.

        Args:
            suffix: Deadline suffix, giving "<project>-<suffix>.json".

        Returns:
            Path of the written file.

        Raises:
            OSError: If the file cannot be written.
        """
        return write_class_json(self.grades, self.project, suffix=suffix, output_dir=self.output_dir)

    def histogram_lines(self) -> list[str]:
        """
        Score frequency table, highest score first.

        Available points are taken from the first result with a non-zero rubric.
        """
        total = len(self.grades)
        avail = 0
        for grade in self.grades:
            if grade.available > 0:
                avail = grade.available
                break

        freqs = Counter(grade.score for grade in self.grades)
        lines = [f"Score frequency (n = {total})"]
        for score in sorted(freqs, reverse=True):
            pct = freqs[score] / total * 100.0
            lines.append(f"{score}/{avail}: {freqs[score]}  ({pct:.1f}%)")
        return lines

    def print_histogram(self) -> None:
        print()
        for line in self.histogram_lines():
            print(line)


def write_class_json(
    grades: list[JobResult],
    project: str,
    suffix: str | None = None,
    output_dir: Path = Path("."),
) -> Path:
    """
    Write class results as a pretty-printed JSON list.

    Args:
        grades: Results in roster order.
        project: Project name.
        suffix: Optional deadline suffix.
        output_dir: Directory to write into.

    Returns:
        Path of the written file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    path = class_json_path(project, suffix, output_dir)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([grade.to_record() for grade in grades], f, indent=2)
    return path


def load_class_json(path: Path) -> list[JobResult]:
    """
    Load class results written by write_class_json.

    Args:
        path: Path to the class JSON file.

    Returns:
        List of JobResult objects, labeled by student.
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    grades: list[JobResult] = []
    for item in data:
        grades.append(
            JobResult(
                label=item.get("student") or "",
                comment=item.get("comment", ""),
                results=[TestCaseResult(**r) for r in item.get("results", [])],
                score=item.get("score", 0),
                student=item.get("student"),
                build_err=item.get("build_err"),
            )
        )
    return grades
