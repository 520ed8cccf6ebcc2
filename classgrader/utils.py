"""
Console and text helpers shared across the grader.
"""

import os
import threading
from pathlib import Path


COLORS = {
    "green": "\033[92m",
    "yellow": "\033[93m",
    "red": "\033[91m",
    "reset": "\033[0m",
}

_color_enabled = True
_print_lock = threading.Lock()


def set_color_enabled(enabled: bool) -> None:
    global _color_enabled
    _color_enabled = enabled


def colorize(text: str, color: str) -> str:
    """Wrap text in an ANSI color code when color output is enabled."""
    if not _color_enabled:
        return text
    return f"{COLORS[color]}{text}{COLORS['reset']}"


def print_locked(text: str = "", end: str = "\n") -> None:
    # Workers and the main thread print concurrently
    with _print_lock:
        print(text, end=end, flush=True)


def print_color(text: str, color: str, end: str = "\n") -> None:
    print_locked(colorize(text, color), end=end)


def print_green(text: str, end: str = "\n") -> None:
    print_color(text, "green", end=end)


def print_yellow(text: str, end: str = "\n") -> None:
    print_color(text, "yellow", end=end)


def print_red(text: str, end: str = "\n") -> None:
    print_color(text, "red", end=end)


def justify(text: str, width: int) -> str:
    """Left-justify text to width, never truncating."""
    return text.ljust(width)


def expand_tilde(path: str) -> str:
    """
    Expand a leading "~/" to the user's home directory.

    Args:
        path: Path string from configuration.

    Returns:
        The expanded path string, unchanged if it has no "~/" prefix.
    """
    if path.startswith("~/"):
        return str(home_dir() / path[2:])
    return path


def home_dir() -> Path:
    home = os.environ.get("HOME")
    return Path(home) if home else Path(".")


def project_from_cwd(cwd: Path | None = None) -> str:
    """
    Derive the project name from the current directory.

    "project1-alice" yields "project1"; a name without a dash is returned as is.
    """
    name = (cwd or Path.cwd()).name or "."
    return name.split("-", 1)[0]


def normalize_lines(text: str, case_sensitive: bool) -> list[str]:
    """
    Normalize output for comparison.

    Trailing whitespace of the whole text is dropped, each line is stripped,
    optionally lowercased, and re-terminated with a newline.

    Args:
        text: Raw expected or actual output.
        case_sensitive: Keep letter case when True.

    Returns:
        List of normalized lines.
    """
    lines = []
    for line in text.rstrip().split("\n"):
        line = line.strip()
        if not case_sensitive:
            line = line.lower()
        lines.append(line + "\n")
    return lines


def format_pass_fail(name: str, rubric: int, score: int) -> str:
    """Format "name(score/rubric) " padded to the width of a full-marks label."""
    width = len(f"{name}({rubric}/{rubric}) ")
    return f"{name}({score}/{rubric}) ".ljust(width)


def quote_cmdline(cmdline: list[str]) -> str:
    return " ".join(f'"{arg}"' if " " in arg else arg for arg in cmdline)


def simple_diff(expected: list[str], actual: list[str], max_lines: int) -> list[str]:
    """
    Line-by-line diff of normalized outputs.

    Args:
        expected: Normalized expected lines.
        actual: Normalized actual lines.
        max_lines: Maximum number of differing line pairs to report.

    Returns:
        "- expected" / "+ actual" pairs for each differing line.
    """
    out: list[str] = []
    shown = 0
    for i in range(min(max(len(expected), len(actual)), max_lines)):
        exp = expected[i] if i < len(expected) else ""
        act = actual[i] if i < len(actual) else ""
        if exp != act:
            out.append(f"- {exp.rstrip()}")
            out.append(f"+ {act.rstrip()}")
            shown += 1
            if shown >= max_lines:
                break
    return out
