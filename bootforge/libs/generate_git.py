from __future__ import annotations

import fnmatch
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bootforge.executor.context import TaskContext
from bootforge.executor.types import LibraryError, TaskStatus

from .base import TaskLibrary, parse_option_list
from .git import DEFAULT_REMOTE_NAME


@dataclass
class GenerateGitConfig:
    path: str
    search_paths: list[str]
    excludes: list[str] = field(default_factory=list)
    prune: bool = False
    remote_order: list[str] = field(default_factory=lambda: [DEFAULT_REMOTE_NAME])


class GenerateGitLibrary(TaskLibrary[list[GenerateGitConfig]]):
    name = "generate_git"
    options_type = GenerateGitConfig

    def parse(self, data: Any, task_name: str) -> list[GenerateGitConfig]:
        return parse_option_list(GenerateGitConfig, data, f"{task_name}: data")

    def run(self, options: list[GenerateGitConfig], ctx: TaskContext) -> TaskStatus:
        changed = False
        for config in options:
            if generate(config, ctx):
                changed = True
        return TaskStatus.PASSED if changed else TaskStatus.SKIPPED


def generate(config: GenerateGitConfig, ctx: TaskContext) -> bool:
    out_path = Path(config.path)
    repos = []

    for repo in find_repos(config.search_paths, config.excludes):
        remote, url = _pick_remote(repo, config.remote_order, ctx)
        if url is None:
            ctx.logger.debug("Skipping {}, it has no remotes", repo)
            continue
        repos.append(
            {
                "git_url": url,
                "git_path": str(repo),
                "remote": remote,
                "prune": config.prune,
            }
        )

    if out_path.exists():
        try:
            document = yaml.safe_load(out_path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise LibraryError(f"{out_path}: invalid YAML") from exc
        if not isinstance(document, dict):
            raise LibraryError(f"{out_path}: top-level value is not an object")
        old_text = out_path.read_text(encoding="utf-8")
    else:
        document = {}
        old_text = None

    document["run_lib"] = "git"
    document["data"] = repos
    new_text = yaml.safe_dump(document, sort_keys=False)

    if new_text == old_text:
        ctx.logger.debug("Git task file {} already up to date", out_path)
        return False

    ctx.logger.info("Writing {} repositories to {}", len(repos), out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(new_text, encoding="utf-8")
    return True


def find_repos(search_paths: list[str], excludes: list[str]) -> list[Path]:
    found = []
    for search_path in search_paths:
        root = Path(search_path)
        if not root.is_dir():
            raise LibraryError(f"Search path `{root}` should exist and be a directory.")

        for dirpath, dirnames, _ in os.walk(root):
            current = Path(dirpath)
            if any(fnmatch.fnmatch(str(current), pattern) for pattern in excludes):
                dirnames.clear()
                continue
            if (current / ".git").exists():
                found.append(current)
                # Nested checkouts belong to their parent.
                dirnames.clear()
                continue
            dirnames.sort()

    return sorted(found)


def _pick_remote(
    repo: Path, remote_order: list[str], ctx: TaskContext
) -> tuple[str | None, str | None]:
    remotes = ctx.run_command(["git", "-C", str(repo), "remote"]).stdout.split()
    if not remotes:
        return None, None

    remote = next((name for name in remote_order if name in remotes), remotes[0])
    url = ctx.run_command(["git", "-C", str(repo), "remote", "get-url", remote]).stdout.strip()
    return remote, url
