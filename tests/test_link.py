from __future__ import annotations

import os
from pathlib import Path

import pytest

from bootforge.executor.context import TaskContext
from bootforge.executor.executor import TaskExecutor
from bootforge.executor.types import LibraryError, LibrarySchemaError, RunContext, TaskStatus
from bootforge.libs import LIBRARIES
from bootforge.libs.link import LinkLibrary, LinkOptions

from helpers import lib_task


@pytest.fixture
def dirs(tmp_path: Path) -> tuple[Path, Path, Path]:
    from_dir = tmp_path / "dotfiles"
    to_dir = tmp_path / "home"
    backup_dir = tmp_path / "backup"
    (from_dir / "sub").mkdir(parents=True)
    to_dir.mkdir()
    (from_dir / "a").write_text("a", encoding="utf-8")
    (from_dir / "sub" / "b").write_text("b", encoding="utf-8")
    return from_dir, to_dir, backup_dir


def _ctx(tmp_path: Path) -> TaskContext:
    return TaskContext(RunContext({"HOME": str(tmp_path)}, tmp_path / "tmp"), "link")


def _run(tmp_path: Path, from_dir: Path, to_dir: Path, backup_dir: Path | None = None):
    options = LinkOptions(str(from_dir), str(to_dir), str(backup_dir) if backup_dir else None)
    return LinkLibrary().run(options, _ctx(tmp_path))


def test_links_every_file(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, backup_dir = dirs

    assert _run(tmp_path, from_dir, to_dir, backup_dir) is TaskStatus.PASSED

    assert os.readlink(to_dir / "a") == str(from_dir.resolve() / "a")
    assert os.readlink(to_dir / "sub" / "b") == str(from_dir.resolve() / "sub" / "b")
    assert not (to_dir / "sub").is_symlink()
    # Nothing was backed up, so the backup dir is cleaned away.
    assert not backup_dir.exists()


def test_second_run_is_a_no_op(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, backup_dir = dirs

    _run(tmp_path, from_dir, to_dir, backup_dir)

    assert _run(tmp_path, from_dir, to_dir, backup_dir) is TaskStatus.SKIPPED


def test_existing_file_is_backed_up(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, backup_dir = dirs
    (to_dir / "a").write_text("mine", encoding="utf-8")

    assert _run(tmp_path, from_dir, to_dir, backup_dir) is TaskStatus.PASSED

    assert (to_dir / "a").is_symlink()
    assert (backup_dir / "a").read_text(encoding="utf-8") == "mine"


def test_existing_directory_is_backed_up(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, backup_dir = dirs
    (to_dir / "a").mkdir()
    (to_dir / "a" / "inner").write_text("x", encoding="utf-8")

    _run(tmp_path, from_dir, to_dir, backup_dir)

    assert (to_dir / "a").is_symlink()
    assert (backup_dir / "a" / "inner").read_text(encoding="utf-8") == "x"


def test_wrong_and_broken_links_are_replaced(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, backup_dir = dirs
    elsewhere = tmp_path / "elsewhere"
    elsewhere.write_text("", encoding="utf-8")
    (to_dir / "a").symlink_to(elsewhere)
    (to_dir / "sub").mkdir()
    (to_dir / "sub" / "b").symlink_to(tmp_path / "gone")

    assert _run(tmp_path, from_dir, to_dir, backup_dir) is TaskStatus.PASSED

    assert os.readlink(to_dir / "a") == str(from_dir.resolve() / "a")
    assert os.readlink(to_dir / "sub" / "b") == str(from_dir.resolve() / "sub" / "b")
    assert elsewhere.exists()


def test_file_in_place_of_parent_dir_is_backed_up(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, backup_dir = dirs
    (to_dir / "sub").write_text("was a file", encoding="utf-8")

    _run(tmp_path, from_dir, to_dir, backup_dir)

    assert (to_dir / "sub").is_dir()
    assert (to_dir / "sub" / "b").is_symlink()
    assert (backup_dir / "sub").read_text(encoding="utf-8") == "was a file"


def test_default_backup_dir_lives_in_temp_dir(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, _ = dirs
    (to_dir / "a").write_text("mine", encoding="utf-8")

    _run(tmp_path, from_dir, to_dir)

    assert (tmp_path / "tmp" / "backup" / "link" / "a").exists()


def test_missing_from_dir_fails(tmp_path: Path, dirs) -> None:
    _, to_dir, backup_dir = dirs

    with pytest.raises(LibraryError):
        _run(tmp_path, tmp_path / "missing", to_dir, backup_dir)


def test_link_requires_data() -> None:
    with pytest.raises(LibrarySchemaError):
        LinkLibrary().parse(None, "link")


def test_link_options_defaults() -> None:
    options = LinkLibrary().parse({}, "link")

    assert options == LinkOptions(None, None, None)


def test_link_options_reject_unknown_keys() -> None:
    with pytest.raises(LibrarySchemaError):
        LinkLibrary().parse({"from": "x"}, "link")


def test_default_dirs_are_expanded_against_task_env(tmp_path: Path) -> None:
    home = tmp_path / "home"
    dotfiles = home / "code" / "dotfiles"
    dotfiles.mkdir(parents=True)
    (dotfiles / ".zshrc").write_text("rc", encoding="utf-8")
    executor = TaskExecutor(RunContext({"HOME": str(home)}, tmp_path / "tmp"), LIBRARIES)

    result = executor.execute(lib_task("link", "link", {}))

    assert result.status is TaskStatus.PASSED
    assert (home / ".zshrc").is_symlink()
    assert os.readlink(home / ".zshrc") == str(dotfiles.resolve() / ".zshrc")


def test_explicit_dirs_win_over_defaults(tmp_path: Path, dirs) -> None:
    from_dir, to_dir, _ = dirs
    executor = TaskExecutor(RunContext({"HOME": str(tmp_path)}, tmp_path / "tmp"), LIBRARIES)

    result = executor.execute(
        lib_task("link", "link", {"from_dir": str(from_dir), "to_dir": str(to_dir)})
    )

    assert result.status is TaskStatus.PASSED
    assert (to_dir / "a").is_symlink()
