"""
Configuration loader for the classgrader system.

Locates, creates, parses and validates the YAML configuration file.
"""

import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .config import (
    CONFIG_DIR_ENV,
    CONFIG_FILENAME,
    DEFAULT_CONFIG_DIR,
    DEFAULT_DIGITAL_PATH,
    DEFAULT_TESTS_PATH,
)
from .utils import expand_tilde


class TestSettings(BaseModel):
    """
    Where project suites and external tools live.
    """

    __test__ = False

    tests_path: str = Field(DEFAULT_TESTS_PATH, description="Root of the tests repository")
    digital_path: str = Field(DEFAULT_DIGITAL_PATH, description="Path substituted for $digital")


class RosterSettings(BaseModel):
    students: list[str] = Field(default_factory=list, description="Default student roster")


class GitSettings(BaseModel):
    org: str = Field("", description="Organization owning student repositories")
    credentials: str = Field("ssh", description="'ssh' or 'https' remote URLs")


class GraderConfig(BaseModel):
    """
    Configuration model for the grader.
    """

    model_config = ConfigDict(populate_by_name=True)

    test: TestSettings = Field(default_factory=TestSettings)
    roster: RosterSettings = Field(default_factory=RosterSettings, alias="config")
    git: GitSettings = Field(default_factory=GitSettings)

    @property
    def tests_path(self) -> str:
        return expand_tilde(self.test.tests_path)

    @property
    def students(self) -> list[str]:
        return self.roster.students


def resolve_config_path(cwd: Path | None = None, env: Mapping[str, str] | None = None) -> Path:
    """
    Find the configuration file.

    The directory named by $GRADE_CONFIG_DIR wins; otherwise the nearest
    config.yml in the working directory or one of its parents; otherwise
    ~/.config/grade/config.yml, which may not exist yet.

    Args:
        cwd: Directory to start searching from. Defaults to the current directory.
        env: Environment to consult. Defaults to os.environ.

    Returns:
        Path to the configuration file.
    """
    env = os.environ if env is None else env
    config_dir = env.get(CONFIG_DIR_ENV)
    if config_dir:
        return Path(config_dir) / CONFIG_FILENAME

    start = (cwd or Path.cwd()).resolve()
    for directory in [start, *start.parents]:
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate

    return Path(expand_tilde(DEFAULT_CONFIG_DIR)) / CONFIG_FILENAME


def load_config(config_path: Path) -> GraderConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        GraderConfig object with loaded values.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        yaml.YAMLError: If config file is invalid YAML.
        ValidationError: If config data is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return GraderConfig()

    return GraderConfig.model_validate(config_data)


def load_or_create_config(config_path: Path) -> GraderConfig:
    """
    Load configuration, first writing a default file if none exists.

    Args:
        config_path: Path to the YAML configuration file.

    Returns:
        GraderConfig object with loaded values.
    """
    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        defaults = GraderConfig().model_dump(by_alias=True)
        with open(config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(defaults, f, sort_keys=False)
        print(f"Created default configuration at {config_path}")

    return load_config(config_path)
