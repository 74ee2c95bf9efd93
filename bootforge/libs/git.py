from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from bootforge.executor.context import TaskContext
from bootforge.executor.types import LibraryError, TaskStatus

from .base import TaskLibrary, parse_option_list

DEFAULT_REMOTE_NAME = "origin"


@dataclass
class GitRepo:
    git_url: str
    git_path: str
    remote: str = DEFAULT_REMOTE_NAME
    branch: str | None = None
    prune: bool = False


class GitLibrary(TaskLibrary[list[GitRepo]]):
    name = "git"
    options_type = GitRepo

    def parse(self, data: Any, task_name: str) -> list[GitRepo]:
        return parse_option_list(GitRepo, data, f"{task_name}: data")

    def run(self, options: list[GitRepo], ctx: TaskContext) -> TaskStatus:
        changed = False
        errors: list[str] = []

        for repo in options:
            try:
                if update_repo(repo, ctx):
                    changed = True
            except LibraryError as exc:
                ctx.logger.error("Failed to update {}: {}", repo.git_path, exc)
                errors.append(f"{repo.git_path}: {exc}")

        if errors:
            raise LibraryError(
                f"{len(errors)} of {len(options)} repositories failed to update:\n  "
                + "\n  ".join(errors)
            )

        return TaskStatus.PASSED if changed else TaskStatus.SKIPPED


def update_repo(repo: GitRepo, ctx: TaskContext) -> bool:
    """Bring one checkout up to date; True if anything changed."""
    path = Path(repo.git_path)
    log = ctx.logger

    def git(*args: str, check: bool = True):
        return ctx.run_command(["git", "-C", str(path), *args], check=check)

    if not (path / ".git").exists():
        if path.exists() and any(path.iterdir()):
            raise LibraryError(f"{path} exists, is not empty, and is not a git checkout")
        path.parent.mkdir(parents=True, exist_ok=True)
        argv = ["git", "clone", "--origin", repo.remote]
        if repo.branch:
            argv += ["--branch", repo.branch]
        log.info("Cloning {} into {}", repo.git_url, path)
        ctx.run_command([*argv, "--", repo.git_url, str(path)])
        return True

    current_url = git("remote", "get-url", repo.remote, check=False)
    if current_url.returncode != 0:
        log.info("Adding remote {} -> {}", repo.remote, repo.git_url)
        git("remote", "add", repo.remote, repo.git_url)
    elif current_url.stdout.strip() != repo.git_url:
        log.warning(
            "Remote {} was {}, changing to {}",
            repo.remote,
            current_url.stdout.strip(),
            repo.git_url,
        )
        git("remote", "set-url", repo.remote, repo.git_url)

    before = git("rev-parse", "HEAD", check=False).stdout.strip()

    fetch = ["fetch", "--quiet", repo.remote]
    if repo.prune:
        fetch.append("--prune")
    git(*fetch)

    if repo.branch:
        current = git("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        if current.stdout.strip() != repo.branch:
            local = git(
                "rev-parse", "--verify", "--quiet", f"refs/heads/{repo.branch}", check=False
            )
            if local.returncode == 0:
                git("checkout", "--quiet", repo.branch)
            else:
                git(
                    "checkout",
                    "--quiet",
                    "-b",
                    repo.branch,
                    "--track",
                    f"{repo.remote}/{repo.branch}",
                )

    upstream = git(
        "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{upstream}", check=False
    )
    if upstream.returncode != 0:
        log.debug("{} has no upstream branch, not merging", path)
    elif git("status", "--porcelain", "--untracked-files=no").stdout.strip():
        log.warning("{} has uncommitted changes, not merging {}", path, upstream.stdout.strip())
    else:
        git("merge", "--quiet", "--ff-only", "@{upstream}")

    after = git("rev-parse", "HEAD", check=False).stdout.strip()
    if before != after:
        log.info("Updated {} from {} to {}", path, before[:12] or "(none)", after[:12])
        return True
    return False
