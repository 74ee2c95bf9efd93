from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from bootforge.executor.context import TaskContext
from bootforge.executor.env import expand
from bootforge.executor.types import LibraryError, TaskStatus

from .base import TaskLibrary


DEFAULT_FROM_DIR = "~/code/dotfiles"
DEFAULT_TO_DIR = "~"


@dataclass
class LinkOptions:
    from_dir: str | None = None
    to_dir: str | None = None
    backup_dir: str | None = None


class LinkLibrary(TaskLibrary[LinkOptions]):
    name = "link"
    options_type = LinkOptions

    def run(self, options: LinkOptions, ctx: TaskContext) -> TaskStatus:
        log = ctx.logger
        from_dir = _resolve_directory(
            Path(options.from_dir or expand(DEFAULT_FROM_DIR, ctx.env)), "From"
        )
        to_dir = _resolve_directory(
            Path(options.to_dir or expand(DEFAULT_TO_DIR, ctx.env)), "To"
        )

        backup_dir = (
            Path(options.backup_dir)
            if options.backup_dir
            else ctx.temp_dir / "backup" / "link"
        )
        if not backup_dir.exists():
            log.debug("Backup dir '{}' doesn't exist, creating it.", backup_dir)
            try:
                backup_dir.mkdir(parents=True)
            except OSError as exc:
                raise LibraryError(f"Failed to create directory `{backup_dir}`: {exc}") from exc
        backup_dir = _resolve_directory(backup_dir, "Backup")

        log.debug("Linking from {} to {} (backup dir {}).", from_dir, to_dir, backup_dir)

        work_done = False
        for dirpath, dirnames, filenames in os.walk(from_dir):
            dirnames.sort()
            for filename in sorted(filenames):
                from_path = Path(dirpath) / filename
                rel_path = from_path.relative_to(from_dir)
                _create_parent_dir(ctx, to_dir, rel_path, backup_dir)
                if _link_path(ctx, from_path, to_dir, rel_path, backup_dir):
                    work_done = True

        try:
            backup_dir.rmdir()
        except FileNotFoundError:
            log.trace("Looks like another link process already cleaned the backup directory.")
        except OSError:
            log.warning("Backup dir {} non-empty, check contents.", backup_dir)

        return TaskStatus.PASSED if work_done else TaskStatus.SKIPPED


def _resolve_directory(path: Path, name: str) -> Path:
    if not path.is_dir():
        raise LibraryError(f"{name} directory `{path}` should exist and be a directory.")
    return path.resolve()


def _is_present(path: Path) -> bool:
    # Also true for broken symlinks.
    return path.is_symlink() or path.exists()


def _backup(ctx: TaskContext, path: Path, backup_path: Path) -> None:
    backup_path.parent.mkdir(parents=True, exist_ok=True)
    ctx.logger.info("Moving to backup: {} -> {}", path, backup_path)
    try:
        shutil.move(str(path), str(backup_path))
    except OSError as exc:
        raise LibraryError(f"Failed to rename from `{path}` to `{backup_path}`: {exc}") from exc


def _create_parent_dir(
    ctx: TaskContext, to_dir: Path, rel_path: Path, backup_dir: Path
) -> None:
    parent = (to_dir / rel_path).parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
        return
    except (FileExistsError, NotADirectoryError):
        ctx.logger.info(
            "Failed to create parent dir, walking up the tree to see if there's a file "
            "that needs to become a directory."
        )

    # Closest ancestor first.
    for rel_parent in list(rel_path.parents)[:-1]:
        abs_path = to_dir / rel_parent
        if not _is_present(abs_path):
            continue
        if abs_path.is_dir() and not abs_path.is_symlink():
            raise LibraryError(
                "Failed to create the parent directory for the symlink, but the first "
                f"existing path is a directory.\n  Path: {abs_path}"
            )
        ctx.logger.warning(
            "File will be overwritten by parent directory of link.\n  File: {}", abs_path
        )
        if abs_path.is_symlink():
            ctx.logger.info("Removing symlink: {}", abs_path)
            abs_path.unlink()
        else:
            _backup(ctx, abs_path, backup_dir / rel_parent)

    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise LibraryError(f"Failed to create parent dir {parent}: {exc}") from exc


def _link_path(
    ctx: TaskContext, from_path: Path, to_dir: Path, rel_path: Path, backup_dir: Path
) -> bool:
    """Symlink ``to_dir/rel_path`` to ``from_path``; False if already linked."""
    log = ctx.logger
    to_path = to_dir / rel_path

    if to_path.is_symlink():
        existing = Path(os.readlink(to_path))
        if existing == from_path:
            log.debug("Link at {} already points to {}, skipping.", to_path, existing)
            return False
        if to_path.exists():
            log.warning("Link at {} points to {}, changing to {}.", to_path, existing, from_path)
        else:
            log.info("Removing broken symlink {} -> {}", to_path, existing)
        try:
            to_path.unlink()
        except OSError as exc:
            raise LibraryError(f"Failed to delete `{to_path}`: {exc}") from exc
    elif to_path.is_dir():
        log.warning(
            "Expected file or link at {}, found directory, moving to {}", to_path, backup_dir
        )
        _backup(ctx, to_path, backup_dir / rel_path)
    elif to_path.exists():
        log.warning("Existing file at {}, moving to {}", to_path, backup_dir)
        _backup(ctx, to_path, backup_dir / rel_path)

    log.info("Linking:\n  From: {}\n  To: {}", from_path, to_path)
    try:
        to_path.symlink_to(from_path)
    except OSError as exc:
        raise LibraryError(
            f"Failed to symlink from `{from_path}` to `{to_path}`: {exc}"
        ) from exc
    return True
