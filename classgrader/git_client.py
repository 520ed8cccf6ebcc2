"""
Git operations on student repositories.

Clones and pulls "<project>-<student>" repositories from the course
organization, optionally checking out the last commit before a deadline.
"""

import shutil
from pathlib import Path

from .config import GIT_TIMEOUT_SECONDS
from .executor import ExecError, exec_capture
from .models import CapturedOutput
from .utils import print_red


class GitClient:
    """
    Runs git through the bounded executor.
    """

    def __init__(self, org: str, credentials: str = "ssh", verbose: bool = False) -> None:
        """
        Initialize the git client.

        Args:
            org: Organization owning the student repositories.
            credentials: "ssh" or "https" remote URLs.
            verbose: Echo git output.
        """
        self.org = org
        self.credentials = credentials
        self.verbose = verbose

    def remote_url(self, repo_name: str) -> str:
        if self.credentials == "https":
            return f"https://github.com/{self.org}/{repo_name}"
        if self.credentials != "ssh":
            print_red(f"unknown Git.credentials: {self.credentials}")
        return f"git@github.com:{self.org}/{repo_name}.git"

    @staticmethod
    def _run(args: list[str], cwd: Path | None = None) -> CapturedOutput:
        return exec_capture(["git", *args], cwd=cwd, timeout=GIT_TIMEOUT_SECONDS)

    def default_branch(self, local_path: Path) -> str:
        """
        Default branch of the origin remote.

        Raises:
            ValueError: If git reports no HEAD branch.
        """
        captured = self._run(["remote", "show", "origin"], cwd=local_path)
        for line in captured.text.splitlines():
            _, sep, branch = line.partition("HEAD branch:")
            if sep and branch.strip():
                return branch.strip()
        raise ValueError("No default branch detected")

    def commit_before(self, local_path: Path, branch: str, date: str) -> str:
        """
        Hash of the last first-parent commit on branch before date.

        Args:
            local_path: Repository directory.
            branch: Branch to search.
            date: "YYYY-MM-DD" (midnight) or "YYYY-MM-DD HH:MM:SS".

        Raises:
            ValueError: If no commit precedes the date.
        """
        before = date if " " in date else f"{date} 00:00:00"
        captured = self._run(
            ["rev-list", "-n", "1", "--first-parent", f"--before={before}", branch],
            cwd=local_path,
        )
        lines = captured.text.splitlines()
        commit = lines[0].strip() if lines and captured.success else ""
        if not commit:
            raise ValueError("No commits in date range")
        return commit

    def short_hash(self, local_path: Path) -> str | None:
        if not local_path.is_dir():
            return None
        captured = self._run(["rev-parse", "--short", "HEAD"], cwd=local_path)
        lines = captured.text.splitlines()
        if not captured.success or not lines:
            return None
        return lines[0].strip() or None

    def clone(self, project: str, student: str, local_path: Path, date: str | None = None) -> bool:
        """
        Clone a student's repository, optionally rewound to a deadline.

        A repository with no commits before the deadline is removed again.

        Returns:
            True if a usable clone now exists at local_path.
        """
        if local_path.is_dir():
            print(f"Already exists: {local_path}")
            return False

        url = self.remote_url(f"{project}-{student}")
        try:
            captured = self._run(["clone", url, str(local_path)])
        except ExecError as e:
            print_red(f"git clone failed: {e}")
            return False
        if self.verbose:
            print(captured.text, end="")
        if not captured.success:
            print_red("No remote repo or clone failed")
            return False

        if date is None:
            return True
        try:
            branch = self.default_branch(local_path)
            commit = self.commit_before(local_path, branch, date)
        except ValueError as e:
            print_red(f"{e}: {local_path}")
            shutil.rmtree(local_path, ignore_errors=True)
            return False
        except ExecError as e:
            print_red(f"git failed: {e}")
            return False

        captured = self._run(["checkout", commit], cwd=local_path)
        if self.verbose:
            print(captured.text, end="")
        return captured.success

    def pull(self, local_path: Path) -> bool:
        """
        Check out the default branch and pull.

        Returns:
            True if the pull succeeded.
        """
        if not local_path.is_dir():
            print_red(f"Local repo {local_path} does not exist")
            return False
        try:
            try:
                branch = self.default_branch(local_path)
            except ValueError:
                branch = None
            if branch:
                self._run(["checkout", branch], cwd=local_path)
            captured = self._run(["pull"], cwd=local_path)
        except ExecError as e:
            print_red(f"git pull failed: {e}")
            return False
        print(captured.text, end="")
        return captured.success
