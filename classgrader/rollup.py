"""
Rollup of scores across grading deadlines.

Later submissions earn a percentage of their improvement over the score
rolled up so far.
"""

import json
from pathlib import Path

from .config import ROLLUP_SUFFIX
from .grades_aggregator import class_json_path, load_class_json
from .models import DateItem, JobResult


def rollup(project: str, dates: list[DateItem], output_dir: Path = Path(".")) -> Path:
    """
    Combine per-deadline class results into one rolled-up score per student.

    For each deadline, in order, a changed score moves the rolled score by
    (score - rolled) * percentage. Deadlines without a results file are
    skipped.

    Args:
        project: Project name.
        dates: Deadlines in order.
        output_dir: Directory holding "<project>-<suffix>.json" files.

    Returns:
        Path of the written "<project>-rollup.json".
    """
    by_student: dict[str, dict[str, JobResult]] = {}
    for item in dates:
        path = class_json_path(project, item.suffix, output_dir)
        if not path.exists():
            continue
        for grade in load_class_json(path):
            if not grade.student:
                continue
            by_student.setdefault(grade.student, {})[item.suffix] = grade

    rolled_items = []
    for student in sorted(by_student):
        graded = by_student[student]
        rolled_score = 0.0
        prev_score = 0
        rolled_comment = ""
        for item in dates:
            grade = graded.get(item.suffix)
            if grade is None:
                continue
            comment_line = f"{item.suffix}: {rolled_score} + ({grade.score} - {rolled_score}) * {item.percentage} = "
            if grade.score != prev_score:
                rolled_score += (grade.score - rolled_score) * item.percentage
            print(f"{student}: {comment_line}{rolled_score}")
            rolled_comment += f"{grade.comment}\n\n{comment_line}{rolled_score}\n\n"
            prev_score = grade.score
        rolled_items.append({"student": student, "score": rolled_score, "comment": rolled_comment})

    output_path = output_dir / f"{project}{ROLLUP_SUFFIX}.json"
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(rolled_items, f, indent=2)
    return output_path
