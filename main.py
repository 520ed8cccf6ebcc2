"""
classgrader: Build and test student programs in parallel

Usage:
  main.py test [-p PROJECT] [-n NAME] [-v] [--very-verbose] [--unified-diff] [--quiet] [--no-color]
  main.py class [-p PROJECT] [-s STUDENTS] [-j JOBS] [-d] [-v] [--very-verbose] [--unified-diff] [--quiet] [--no-color]
  main.py clone [-p PROJECT] [-s STUDENTS] [--date=DATE] [-d] [-v]
  main.py pull [-p PROJECT] [-s STUDENTS]
  main.py rollup [-p PROJECT]
  main.py (-h | --help)

Options:
  -p PROJECT --project=PROJECT     Project name (defaults to the current directory name).
  -n NAME --test-name=NAME         Run only this test case.
  -s STUDENTS --students=STUDENTS  Comma-separated students (defaults to the configured roster).
  -j JOBS --jobs=JOBS              Number of parallel jobs (defaults to the CPU count).
  -d --by-date                     Select a deadline from dates.yml.
  --date=DATE                      Check out the last commit before 'YYYY-MM-DD[ HH:MM:SS]'.
  -v --verbose                     Show diffs for failed test cases (runs one job at a time).
  --very-verbose                   Show full expected and actual output.
  --unified-diff                   Use unified diffs when verbose.
  --quiet                          Suppress per-test-case pass/fail lines.
  --no-color                       Disable ANSI color output.
  -h --help                        Show this screen.
"""

import os
import sys
from pathlib import Path

from docopt import docopt

from classgrader.config_loader import GraderConfig, load_or_create_config, resolve_config_path
from classgrader.executor import install_interrupt_handler, terminate_all_groups
from classgrader.git_client import GitClient
from classgrader.grades_aggregator import GradesAggregator
from classgrader.local_runner import LocalRunner
from classgrader.models import JobResult
from classgrader.rollup import rollup
from classgrader.scheduler import run_jobs
from classgrader.suite_parser import load_dates, load_suite, select_date
from classgrader.utils import (
    justify,
    print_green,
    print_locked,
    print_red,
    project_from_cwd,
    set_color_enabled,
)


def parse_students(value: str | None, config: GraderConfig) -> list[str]:
    """
    Students named on the command line, or the configured roster.

    Args:
        value: Comma-separated student list from --students.
        config: Loaded configuration.

    Returns:
        List of student identifiers, possibly empty.
    """
    if value:
        return [s.strip() for s in value.split(",") if s.strip()]
    return list(config.students)


def repo_label(project: str, student: str, suffix: str | None = None) -> str:
    label = f"{project}-{student}"
    if suffix:
        label = f"{label}-{suffix}"
    return label


def print_report(result: JobResult, indent: str = "") -> None:
    if result.report:
        print_locked("\n".join(f"{indent}{line}" for line in result.report))


def make_runner(arguments: dict, config: GraderConfig, project: str) -> LocalRunner:
    suite = load_suite(config.test.tests_path, project)
    return LocalRunner(
        suite=suite,
        project=project,
        tests_path=config.test.tests_path,
        digital_path=config.test.digital_path,
        verbose=arguments["--verbose"],
        very_verbose=arguments["--very-verbose"],
        unified_diff=arguments["--unified-diff"],
        quiet=arguments["--quiet"],
    )


def select_deadline(config: GraderConfig, project: str) -> tuple[str | None, str | None]:
    """(suffix, date) of the chosen deadline, or (None, None)."""
    item = select_date(load_dates(config.test.tests_path, project))
    if item is None:
        return None, None
    return item.suffix, item.date


def run_test(arguments: dict, config: GraderConfig, project: str) -> int:
    """
    Grade the submission in the current directory.
    """
    runner = make_runner(arguments, config, project)
    working_dir = Path(".")
    if runner.suite.project.subdir:
        working_dir = working_dir / runner.suite.project.subdir

    job = runner.make_job(str(working_dir), working_dir, only_name=arguments["--test-name"])
    run_jobs([job], runner, workers=1, on_result=print_report)
    return 0


def run_class(arguments: dict, config: GraderConfig, project: str) -> int:
    """
    Grade every student's submission and save the class results.
    """
    students = parse_students(arguments["--students"], config)
    if not students:
        print_red("No students provided and config.students is empty")
        return 2

    verbose = arguments["--verbose"] or arguments["--very-verbose"]
    try:
        workers = 1 if verbose else (int(arguments["--jobs"]) if arguments["--jobs"] else None)
    except ValueError:
        print_red(f"Invalid --jobs value: {arguments['--jobs']}")
        return 2

    suffix = None
    if arguments["--by-date"]:
        suffix, _date = select_deadline(config, project)

    runner = make_runner(arguments, config, project)
    subdir = runner.suite.project.subdir
    jobs = []
    for student in students:
        working_dir = Path(repo_label(project, student, suffix))
        if subdir:
            working_dir = working_dir / subdir
        jobs.append(runner.make_job(str(working_dir), working_dir, student=student))

    longest = max(len(job.label) for job in jobs) + 1
    aggregator = GradesAggregator(project)

    def on_result(result: JobResult) -> None:
        print_locked(f"{justify(result.label, longest)}{result.score}")
        print_report(result, indent="  ")
        aggregator.add_grade(result)

    print(f"Grading {len(jobs)} submissions...")
    run_jobs(jobs, runner, workers=workers, on_result=on_result)
    aggregator.print_histogram()

    try:
        output_path = aggregator.save_all(suffix=suffix)
    except OSError as e:
        print_red(f"Failed to save class results: {e}")
        return 3
    print(f"Saved class results to {output_path}")
    return 0


def run_clone(arguments: dict, config: GraderConfig, project: str) -> int:
    students = parse_students(arguments["--students"], config)
    if not students:
        print_red("No students provided and config.students is empty")
        return 2

    suffix, date = None, arguments["--date"]
    if arguments["--by-date"]:
        suffix, date = select_deadline(config, project)

    client = GitClient(config.git.org, config.git.credentials, verbose=arguments["--verbose"])
    labels = [repo_label(project, student, suffix) for student in students]
    longest = max(len(label) for label in labels) + 1
    for student, label in zip(students, labels):
        print(justify(label, longest), end="", flush=True)
        client.clone(project, student, Path(label), date=date)
        print()
    return 0


def run_pull(arguments: dict, config: GraderConfig, project: str) -> int:
    students = parse_students(arguments["--students"], config)
    if not students:
        print_red("No students provided and config.students is empty")
        return 2

    client = GitClient(config.git.org, config.git.credentials)
    labels = [repo_label(project, student) for student in students]
    longest = max(len(label) for label in labels) + 1
    for label in labels:
        print(justify(label, longest), end="", flush=True)
        client.pull(Path(label))
        print()
    return 0


def run_rollup(arguments: dict, config: GraderConfig, project: str) -> int:
    dates = load_dates(config.test.tests_path, project)
    output_path = rollup(project, dates)
    print(f"Saved rollup to {output_path}")
    return 0


COMMANDS = {
    "test": run_test,
    "class": run_class,
    "clone": run_clone,
    "pull": run_pull,
    "rollup": run_rollup,
}


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entrypoint.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    arguments = docopt(__doc__, argv=argv)
    set_color_enabled(not arguments.get("--no-color") and "NO_COLOR" not in os.environ)

    config_path = resolve_config_path()
    try:
        config = load_or_create_config(config_path)
    except Exception as e:
        print_red(f"Failed to load config: {e}")
        return 1

    if arguments.get("--verbose"):
        print(f"Config directory: {config_path.parent}")

    project = arguments["--project"] or project_from_cwd()
    command = next(name for name in COMMANDS if arguments.get(name))

    install_interrupt_handler()
    try:
        code = COMMANDS[command](arguments, config, project)
    except KeyboardInterrupt:
        terminate_all_groups()
        print("\nGrading interrupted by user.")
        return 1
    except (FileNotFoundError, ValueError) as e:
        print_red(str(e))
        return 2 if command != "test" else 1

    if code == 0:
        print_green("\nDone")
    return code


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
