"""
Local execution runner for student submissions.

Builds a submission on the host and runs every test case of the project
suite against it through the bounded executor, comparing normalized
output with the expected text.
"""

import difflib
from pathlib import Path

from .config import (
    BUILD_MAKE,
    BUILD_NONE,
    BUILD_TIMEOUT_SECONDS,
    DEFAULT_DIGITAL_PATH,
    DIFF_MAX_LINES,
    MAKEFILE_NAMES,
    OUTPUT_LIMIT_BYTES,
    PLACEHOLDER_DIGITAL,
    PLACEHOLDER_NAME,
    PLACEHOLDER_PROJECT,
    PLACEHOLDER_PROJECT_TESTS,
)
from .executor import (
    ExecError,
    ExecFormatError,
    ExecTimeout,
    GenericIOError,
    OutputLimitExceeded,
    SpawnNotFound,
    exec_capture,
)
from .grades_aggregator import make_comment, make_earned_avail
from .models import CapturedOutput, JobResult, ProjectSuite, SubmissionJob, TestCaseResult, TestCaseSpec
from .utils import colorize, expand_tilde, format_pass_fail, normalize_lines, quote_cmdline, simple_diff

# Exit status a shell reports when it finds a program it cannot execute
EXIT_CANNOT_EXECUTE: int = 126


def describe_exec_error(err: ExecError, cmdline: list[str]) -> str:
    """
    Map an execution failure to the message stored with a test case result.

    Args:
        err: The failure raised by the executor.
        cmdline: Command line that was run.

    Returns:
        One-line diagnostic for the student.
    """
    if isinstance(err, ExecTimeout):
        return "Program timed out (infinite loop?)"
    if isinstance(err, OutputLimitExceeded):
        return "Program produced too much output (infinite loop?)"
    if isinstance(err, SpawnNotFound):
        return "Program not found (build failed?)"
    if isinstance(err, ExecFormatError):
        exe = cmdline[0] if cmdline else "./program"
        return f"OSError: [Errno 8] Exec format error: '{exe}'"
    return f"IO error: {err}"


def _looks_unexecutable(captured: CapturedOutput) -> bool:
    return captured.exit_code == EXIT_CANNOT_EXECUTE or "exec format error" in captured.text.lower()


class LocalRunner:
    """
    Runs a project suite against student submissions on the host machine.

    One runner is shared by all workers; it holds only read-only state, and
    everything produced while grading a job goes into that job's result.
    """

    def __init__(
        self,
        suite: ProjectSuite,
        project: str,
        tests_path: str,
        digital_path: str = DEFAULT_DIGITAL_PATH,
        verbose: bool = False,
        very_verbose: bool = False,
        unified_diff: bool = False,
        quiet: bool = False,
    ) -> None:
        """
        Initialize the local runner.

        Args:
            suite: Loaded project suite.
            project: Project name, substituted for $project.
            tests_path: Root of the tests repository.
            digital_path: External tool path, substituted for $digital.
            verbose: Report a diff for each failed test case.
            very_verbose: Report full expected and actual output.
            unified_diff: Use unified diffs in verbose reports.
            quiet: Suppress per test case pass/fail lines.
        """
        self.suite = suite
        self.project = project
        self.tests_path = expand_tilde(tests_path)
        self.digital_path = expand_tilde(digital_path)
        self.verbose = verbose
        self.very_verbose = very_verbose
        self.unified_diff = unified_diff
        self.quiet = quiet

    @property
    def project_tests(self) -> str:
        return str(Path(self.tests_path) / self.project)

    def make_job(
        self,
        label: str,
        working_dir: Path,
        student: str | None = None,
        only_name: str | None = None,
    ) -> SubmissionJob:
        """Create a job that runs this runner's suite against one submission."""
        return SubmissionJob(
            label=label,
            working_dir=working_dir,
            student=student,
            build=self.suite.project.build,
            tests=self.suite.tests,
            only_name=only_name,
        )

    def interpolate(self, text: str, tc_name: str) -> str:
        out = text.replace(PLACEHOLDER_PROJECT_TESTS, self.project_tests)
        out = out.replace(PLACEHOLDER_PROJECT, self.project)
        out = out.replace(PLACEHOLDER_DIGITAL, self.digital_path)
        return out.replace(PLACEHOLDER_NAME, tc_name)

    def run_submission(self, job: SubmissionJob) -> JobResult:
        """
        Build a submission and run its test cases.

        Args:
            job: The submission to grade.

        Returns:
            JobResult with one result per selected test case, in suite order.
        """
        report: list[str] = []

        if not job.working_dir.is_dir():
            msg = f"Local repo {job.working_dir} does not exist"
            if not self.quiet:
                report.append(colorize(msg, "red"))
            return JobResult(label=job.label, comment=msg, student=job.student, report=report)

        build_err = self.build(job)
        if build_err and not self.quiet:
            report.append(colorize(build_err, "red"))

        results = [self.run_one_test(job, tc, report) for tc in job.selected_tests()]

        result = JobResult(
            label=job.label,
            results=results,
            score=sum(r.score for r in results),
            student=job.student,
            build_err=build_err,
        )
        total_rubric = sum(tc.rubric for tc in job.tests)
        result.comment = make_comment(result, total_rubric)
        if not self.quiet:
            report.append(make_earned_avail(result.score, total_rubric))
        result.report = report
        return result

    def build(self, job: SubmissionJob) -> str | None:
        """
        Run the build step for a submission.

        Returns:
            None on success or when building is skipped, else a diagnostic.
        """
        if job.build == BUILD_NONE:
            return None
        if job.build != BUILD_MAKE:
            return f'Unknown build plan: "{job.build}"'

        if not any((job.working_dir / name).is_file() for name in MAKEFILE_NAMES):
            return f"Makefile not found: {job.working_dir / MAKEFILE_NAMES[0]}"

        cmd = ["make", "-C", str(job.working_dir)]
        try:
            captured = exec_capture(cmd, timeout=BUILD_TIMEOUT_SECONDS, output_limit=OUTPUT_LIMIT_BYTES)
        except ExecError:
            return "Program did not make successfully"
        if not captured.success:
            return "Program did not make successfully"
        return None

    def run_one_test(self, job: SubmissionJob, tc: TestCaseSpec, report: list[str]) -> TestCaseResult:
        """
        Run one test case and score it.

        Execution failures become the result's test_err; an output mismatch
        only leaves the score at zero.
        """
        cmdline = [self.interpolate(arg, tc.name) for arg in tc.input]
        score = 0
        test_err = None

        try:
            actual = self._actual_output(job, tc, cmdline)
        except ExecError as e:
            test_err = describe_exec_error(e, cmdline)
        else:
            strip = self.suite.project.strip_output
            if strip:
                actual = actual.replace(strip, "")
            if self.matches_expected(tc, actual):
                score = tc.rubric
            self._report_verbose(tc, cmdline, actual, report)

        result = TestCaseResult(rubric=tc.rubric, score=score, test=tc.name, test_err=test_err)
        if not self.quiet:
            label = format_pass_fail(result.test, result.rubric, result.score)
            if test_err:
                label = f"{label.rstrip()}    {test_err}"
            report.append(colorize(label, "red" if result.score == 0 else "green"))
        return result

    def _execute(self, job: SubmissionJob, cmdline: list[str]) -> CapturedOutput:
        settings = self.suite.project
        return exec_capture(
            cmdline,
            cwd=job.working_dir,
            timeout=settings.timeout,
            capture_stderr=settings.capture_stderr,
            output_limit=OUTPUT_LIMIT_BYTES,
        )

    def _actual_output(self, job: SubmissionJob, tc: TestCaseSpec, cmdline: list[str]) -> str:
        if tc.reads_stdout:
            captured = self._execute(job, cmdline)
            if not captured.success and _looks_unexecutable(captured):
                raise ExecFormatError(cmdline[0] if cmdline else "./program")
            return captured.text

        # The program may fail after writing its output file
        exec_err: ExecError | None = None
        try:
            self._execute(job, cmdline)
        except ExecError as e:
            exec_err = e

        output_path = job.working_dir / tc.output
        try:
            return output_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise (exec_err or GenericIOError(str(e))) from e

    def matches_expected(self, tc: TestCaseSpec, actual: str) -> bool:
        expected = self.interpolate(tc.expected, tc.name)
        return normalize_lines(expected, tc.case_sensitive) == normalize_lines(actual, tc.case_sensitive)

    def _report_verbose(self, tc: TestCaseSpec, cmdline: list[str], actual: str, report: list[str]) -> None:
        cmd_display = quote_cmdline(cmdline)
        expected = self.interpolate(tc.expected, tc.name)

        if self.very_verbose:
            report.append(f"\n\n===[{tc.name}]===expected\n$ {cmd_display}\n{expected}")
            report.append(f"\n===[{tc.name}]===actual\n$ {cmd_display}\n{actual}")

        if not self.verbose:
            return
        lhs = normalize_lines(expected, tc.case_sensitive)
        rhs = normalize_lines(actual, tc.case_sensitive)
        if lhs == rhs:
            return

        if self.unified_diff:
            diff = difflib.unified_diff(
                expected.splitlines(),
                actual.splitlines(),
                fromfile="expected",
                tofile="actual",
                lineterm="",
            )
            report.append("\n".join(diff))
        else:
            report.append(f"\n\n===[{tc.name}]===diff\n$ {cmd_display}")
            report.extend(simple_diff(lhs, rhs, DIFF_MAX_LINES))
