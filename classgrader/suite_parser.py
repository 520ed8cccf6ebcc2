"""
Project suite parser.

Reads a project's test cases from <tests_path>/<project>/<project>.yml
and its grading deadlines from <tests_path>/dates.yml.
"""

import sys
from pathlib import Path
from typing import Callable

import yaml
from pydantic import ValidationError

from .config import DATES_FILENAME, SUITE_SUFFIX
from .models import DateItem, ProjectSuite
from .utils import expand_tilde, print_yellow


def suite_path(tests_path: str, project: str) -> Path:
    return Path(expand_tilde(tests_path)) / project / f"{project}{SUITE_SUFFIX}"


def load_suite(tests_path: str, project: str) -> ProjectSuite:
    """
    Load and validate a project suite.

    Args:
        tests_path: Root of the tests repository.
        project: Project name.

    Returns:
        ProjectSuite with settings and test cases in file order.

    Raises:
        FileNotFoundError: If the suite file doesn't exist.
        ValueError: If the suite file is invalid YAML or fails validation.
    """
    path = suite_path(tests_path, project)
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FileNotFoundError(f"File not found: {path} ({e})") from e

    try:
        data = yaml.safe_load(content) or {}
        suite = ProjectSuite.model_validate(data)
    except (yaml.YAMLError, ValidationError) as e:
        raise ValueError(f"Failed to parse {path}: {e}") from e

    if not suite.tests:
        print_yellow(f"No test cases found: {path}")
    return suite


def load_dates(tests_path: str, project: str) -> list[DateItem]:
    """
    Load the grading deadlines for a project.

    dates.yml maps each project name to a `dates` list:

        project1:
          dates:
            - {suffix: due, date: "2025-01-01", percentage: 1.0}

    Raises:
        FileNotFoundError: If dates.yml doesn't exist.
        ValueError: If the project has no entry or the file is invalid.
    """
    path = Path(expand_tilde(tests_path)) / DATES_FILENAME
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse {path}: {e}") from e

    table = data.get(project)
    if not table:
        raise ValueError(f"No dates for project {project} in {path}")
    try:
        return [DateItem.model_validate(item) for item in table.get("dates", [])]
    except ValidationError as e:
        raise ValueError(f"Failed to parse {path}: {e}") from e


def select_date(
    items: list[DateItem],
    read_line: Callable[[str], str] = input,
    interactive: bool | None = None,
) -> DateItem | None:
    """
    Choose one deadline.

    A single item is chosen without asking. Otherwise the user picks from a
    numbered list; without a terminal there is nothing to ask and no date is
    chosen.

    Args:
        items: Deadlines in file order.
        read_line: Prompt function returning the user's answer.
        interactive: Whether to prompt. Defaults to whether stdin is a TTY.

    Returns:
        The selected DateItem, or None.
    """
    if not items:
        return None
    if len(items) == 1:
        return items[0]

    if interactive is None:
        interactive = sys.stdin.isatty()
    if not interactive:
        return None

    print("Select date:")
    for i, item in enumerate(items, 1):
        print(f"{i}: {item.suffix} {item.date}")
    answer = read_line(f"Enter choice [1-{len(items)}]: ")
    try:
        index = int(answer.strip())
    except ValueError:
        index = 0
    if not 1 <= index <= len(items):
        print_yellow("No selection made")
        return None
    return items[index - 1]
