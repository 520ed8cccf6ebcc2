import pytest
import yaml
from pydantic import ValidationError

from classgrader.config_loader import (
    GraderConfig,
    load_config,
    load_or_create_config,
    resolve_config_path,
)


def write_config(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_environment_directory_wins(tmp_path):
    write_config(tmp_path / "work" / "config.yml", {})

    path = resolve_config_path(cwd=tmp_path / "work", env={"GRADE_CONFIG_DIR": str(tmp_path / "env")})

    assert path == tmp_path / "env" / "config.yml"


def test_nearest_parent_config_is_found(tmp_path):
    config = write_config(tmp_path / "course" / "config.yml", {})
    nested = tmp_path / "course" / "project1" / "project1-alice"
    nested.mkdir(parents=True)

    assert resolve_config_path(cwd=nested, env={}) == config.resolve()


def test_falls_back_to_home_config(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    lonely = tmp_path / "lonely"
    lonely.mkdir()

    path = resolve_config_path(cwd=lonely, env={})

    assert path == tmp_path / "home" / ".config" / "grade" / "config.yml"


def test_load_config_reads_all_sections(tmp_path):
    path = write_config(
        tmp_path / "config.yml",
        {
            "test": {"tests_path": "/srv/tests", "digital_path": "/opt/Digital.jar"},
            "config": {"students": ["alice", "bob"]},
            "git": {"org": "cs-course", "credentials": "https"},
        },
    )

    config = load_config(path)

    assert config.tests_path == "/srv/tests"
    assert config.test.digital_path == "/opt/Digital.jar"
    assert config.students == ["alice", "bob"]
    assert config.git.org == "cs-course"
    assert config.git.credentials == "https"


def test_tests_path_expands_tilde(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", "/home/grader")
    path = write_config(tmp_path / "config.yml", {"test": {"tests_path": "~/tests"}})

    assert load_config(path).tests_path == "/home/grader/tests"


def test_empty_config_uses_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("")

    config = load_config(path)

    assert config == GraderConfig()
    assert config.students == []
    assert config.git.credentials == "ssh"


def test_missing_config_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "config.yml")


def test_invalid_config_raises(tmp_path):
    path = write_config(tmp_path / "config.yml", {"config": {"students": "alice"}})

    with pytest.raises(ValidationError):
        load_config(path)


def test_load_or_create_writes_defaults(tmp_path, capsys):
    path = tmp_path / "grade" / "config.yml"

    config = load_or_create_config(path)

    assert path.is_file()
    written = yaml.safe_load(path.read_text())
    assert set(written) == {"test", "config", "git"}
    assert config == GraderConfig()
    assert "Created default configuration" in capsys.readouterr().out


def test_load_or_create_keeps_existing_file(tmp_path):
    path = write_config(tmp_path / "config.yml", {"config": {"students": ["carol"]}})

    assert load_or_create_config(path).students == ["carol"]
