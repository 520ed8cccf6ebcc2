"""
Configuration constants for the classgrader system.
"""


# Execution configuration
EXECUTION_TIMEOUT_SECONDS: int = 60
BUILD_TIMEOUT_SECONDS: int = 30
GIT_TIMEOUT_SECONDS: int = 300
OUTPUT_LIMIT_BYTES: int = 220_000
POLL_INTERVAL_SECONDS: float = 0.01
KILL_GRACE_SECONDS: float = 0.2
READ_CHUNK_BYTES: int = 8192

# Build plans
BUILD_MAKE: str = "make"
BUILD_NONE: str = "none"
MAKEFILE_NAMES: list[str] = ["Makefile", "makefile"]

# Output sources
OUTPUT_STDOUT: str = "stdout"

# Placeholders substituted into test inputs and expected output.
# $project_tests must be replaced before $project.
PLACEHOLDER_PROJECT_TESTS: str = "$project_tests"
PLACEHOLDER_PROJECT: str = "$project"
PLACEHOLDER_DIGITAL: str = "$digital"
PLACEHOLDER_NAME: str = "$name"

# Configuration discovery
CONFIG_DIR_ENV: str = "GRADE_CONFIG_DIR"
CONFIG_FILENAME: str = "config.yml"
DEFAULT_CONFIG_DIR: str = "~/.config/grade"
DEFAULT_TESTS_PATH: str = "~/tests"
DEFAULT_DIGITAL_PATH: str = "~/Digital/Digital.jar"

# Suite and dates files, relative to tests_path
SUITE_SUFFIX: str = ".yml"
DATES_FILENAME: str = "dates.yml"

# Result files, written to the current directory
CLASS_JSON_SUFFIX: str = ".json"
ROLLUP_SUFFIX: str = "-rollup"

# Verbose diff output
DIFF_MAX_LINES: int = 50
