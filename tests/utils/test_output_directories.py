from pathlib import Path

import pytest

from ecomod.setup_directories import setup_output_directories, DEFAULT_BASE_DIR

pytestmark = pytest.mark.unit


def test_setup_output_directories_creates_all(tmp_path):
    dirs = setup_output_directories(tmp_path)

    assert set(dirs.keys()) == {"base", "downloads", "results", "plots", "logs"}

    for path in dirs.values():
        assert isinstance(path, Path)
        assert path.exists()
        assert path.is_dir()


def test_setup_output_directories_is_idempotent(tmp_path):
    dirs1 = setup_output_directories(tmp_path)
    dirs2 = setup_output_directories(tmp_path)

    assert dirs1 == dirs2


def test_subdirectories_under_base(tmp_path):
    dirs = setup_output_directories(tmp_path / "run")

    assert dirs["base"] == (tmp_path / "run").resolve()
    assert dirs["results"].parent == dirs["base"]
    assert dirs["downloads"].name == "downloads"


def test_default_base_is_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)

    dirs = setup_output_directories()

    assert dirs["base"] == (tmp_path / DEFAULT_BASE_DIR).resolve()
    assert dirs["logs"].exists()


def test_existing_files_kept(tmp_path):
    dirs = setup_output_directories(tmp_path)
    marker = dirs["results"] / "keep.csv"
    marker.write_text("a\n1\n")

    setup_output_directories(tmp_path)

    assert marker.read_text() == "a\n1\n"
