"""
Pydantic models for the classgrader system.

Defines the structured data types for test suites, grading jobs,
and per-submission results.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import BUILD_MAKE, EXECUTION_TIMEOUT_SECONDS, OUTPUT_STDOUT


class TestCaseSpec(BaseModel):
    """
    A single black-box test case from a project suite.

    Attributes:
        name: Test case identifier, unique within the suite.
        input: Command line to run, with placeholders.
        expected: Expected output text, with placeholders.
        output: "stdout", or a file name the program writes its output to.
        case_sensitive: Whether comparison respects letter case.
        rubric: Points awarded when the test case passes.
    """

    __test__ = False
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Test case name")
    input: list[str] = Field(..., description="Command line with placeholders")
    expected: str = Field(..., description="Expected output with placeholders")
    output: str = Field(default=OUTPUT_STDOUT, description="'stdout' or an output file name")
    case_sensitive: bool = Field(default=False, description="Compare with letter case")
    rubric: int = Field(default=0, ge=0, description="Points for passing")

    @property
    def reads_stdout(self) -> bool:
        return self.output == OUTPUT_STDOUT


class ProjectSettings(BaseModel):
    """
    The [project] section of a suite file.

    Attributes:
        build: Build plan, "make" or "none".
        strip_output: Literal text removed from actual output before comparison.
        subdir: Subdirectory of each submission holding the project.
        timeout: Per test case timeout in seconds.
        capture_stderr: Whether stderr is captured along with stdout.
    """

    model_config = ConfigDict(frozen=True)

    build: str = Field(default=BUILD_MAKE, description="Build plan")
    strip_output: str | None = Field(default=None, description="Text removed from output")
    subdir: str | None = Field(default=None, description="Project subdirectory")
    timeout: float = Field(default=EXECUTION_TIMEOUT_SECONDS, gt=0, description="Timeout in seconds")
    capture_stderr: bool = Field(default=True, description="Capture stderr too")


class ProjectSuite(BaseModel):
    """
    A complete project suite: settings plus ordered test cases.
    """

    project: ProjectSettings = Field(default_factory=ProjectSettings)
    tests: list[TestCaseSpec] = Field(default_factory=list)

    @field_validator("tests")
    @classmethod
    def _unique_names(cls, tests: list[TestCaseSpec]) -> list[TestCaseSpec]:
        seen: set[str] = set()
        for tc in tests:
            if tc.name in seen:
                raise ValueError(f"Duplicate test case name: {tc.name}")
            seen.add(tc.name)
        return tests

    @property
    def total_rubric(self) -> int:
        return sum(tc.rubric for tc in self.tests)


class DateItem(BaseModel):
    """
    One grading deadline from dates.yml.

    Attributes:
        suffix: Suffix appended to repo directories and result files.
        date: Commit cutoff, "YYYY-MM-DD" or "YYYY-MM-DD HH:MM:SS".
        percentage: Share of a later improvement that is credited.
    """

    suffix: str = Field(..., description="Directory and file suffix")
    date: str = Field(..., description="Commit cutoff date")
    percentage: float = Field(..., ge=0, description="Credited share of improvement")


class CapturedOutput(BaseModel):
    """
    Output of a supervised command that ran to completion.

    Attributes:
        text: stdout (and stderr, if captured), decoded with replacement.
        exit_code: Process exit status; negative for death by signal.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(default="", description="Captured output")
    exit_code: int = Field(default=0, description="Process exit code")

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class TestCaseResult(BaseModel):
    """
    Result of running one test case against one submission.

    Attributes:
        rubric: Points available.
        score: Points earned, either 0 or rubric.
        test: Test case name.
        test_err: Diagnostic when the execution itself failed.
    """

    __test__ = False
    model_config = ConfigDict(frozen=True)

    rubric: int = Field(..., ge=0, description="Points available")
    score: int = Field(..., ge=0, description="Points earned")
    test: str = Field(..., description="Test case name")
    test_err: str | None = Field(default=None, description="Execution failure message")


class SubmissionJob(BaseModel):
    """
    One submission's build-and-test sequence, the unit of scheduling.
    """

    label: str = Field(..., description="Display identity, e.g. project-student")
    working_dir: Path = Field(..., description="Submission directory")
    student: str | None = Field(default=None, description="Student identifier")
    build: str = Field(default=BUILD_MAKE, description="Build plan, 'none' to skip")
    tests: list[TestCaseSpec] = Field(default_factory=list, description="Test cases in order")
    only_name: str | None = Field(default=None, description="Run only this test case")

    def selected_tests(self) -> list[TestCaseSpec]:
        if self.only_name is None:
            return list(self.tests)
        return [tc for tc in self.tests if tc.name == self.only_name]


class JobResult(BaseModel):
    """
    Complete grading result for one submission.

    Attributes:
        label: Echo of SubmissionJob.label.
        student: Student identifier, if any.
        build_err: Build diagnostic, if the build failed.
        results: Per test case results, in suite order.
        score: Sum of earned points.
        comment: Human-readable summary stored with the grade.
        report: Console lines produced while grading (not persisted).
    """

    label: str = Field(..., exclude=True)
    comment: str = Field(default="", description="Summary comment")
    results: list[TestCaseResult] = Field(default_factory=list)
    score: int = Field(default=0, ge=0, description="Points earned")
    student: str | None = Field(default=None)
    build_err: str | None = Field(default=None)
    report: list[str] = Field(default_factory=list, exclude=True)

    @property
    def available(self) -> int:
        return sum(r.rubric for r in self.results)

    def to_record(self) -> dict:
        """Serialize the way class JSON files store results."""
        return self.model_dump(exclude_none=True)
