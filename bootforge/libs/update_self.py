from __future__ import annotations

import os
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import httpx
from packaging.version import InvalidVersion, Version

from bootforge import __version__
from bootforge.executor.context import TaskContext
from bootforge.executor.types import LibraryError, TaskStatus

from .base import TaskLibrary

APP_USER_AGENT = f"bootforge/{__version__}"
RELEASE_DOWNLOAD_URL = "https://github.com/bootforge/bootforge/releases/latest/download"


def default_release_url() -> str:
    platform = "darwin" if sys.platform == "darwin" else "linux"
    return f"{RELEASE_DOWNLOAD_URL}/bootforge-{platform}"


@dataclass
class UpdateSelfOptions:
    url: str = field(default_factory=default_release_url)
    latest_url: str | None = None
    target: str | None = None
    always_update: bool = False


class UpdateSelfLibrary(TaskLibrary[UpdateSelfOptions]):
    name = "self"
    options_type = UpdateSelfOptions
    data_required = False

    def run(self, options: UpdateSelfOptions, ctx: TaskContext) -> TaskStatus:
        log = ctx.logger
        target = Path(options.target or sys.argv[0]).resolve()

        if not options.always_update and is_dev_install(target):
            log.debug("Skipping self update, '{}' is a development install.", target)
            return TaskStatus.SKIPPED

        try:
            with httpx.Client(
                timeout=httpx.Timeout(60.0),
                follow_redirects=True,
                headers={"User-Agent": APP_USER_AGENT},
            ) as client:
                if options.latest_url:
                    latest = _latest_release(client, options.latest_url)
                    if latest <= Version(__version__):
                        log.debug(
                            "Skipping self update, current version '{}' is not older than "
                            "latest release '{}'",
                            __version__,
                            latest,
                        )
                        return TaskStatus.SKIPPED
                    log.trace("Updating from '{}' to '{}'", __version__, latest)

                download = _download(client, options.url, target.parent)
        except httpx.HTTPError as exc:
            raise LibraryError(f"Failed to download update: {exc}") from exc

        try:
            new_version = _binary_version(download, ctx)
            if new_version > Version(__version__):
                log.info("Updating bootforge from '{}' to '{}'", __version__, new_version)
                os.replace(download, target)
                return TaskStatus.PASSED

            log.debug(
                "Skipping self update, current version '{}' and new version '{}'",
                __version__,
                new_version,
            )
            return TaskStatus.SKIPPED
        finally:
            download.unlink(missing_ok=True)


def is_dev_install(target: Path) -> bool:
    return any((parent / "pyproject.toml").is_file() for parent in target.parents)


def _latest_release(client: httpx.Client, url: str) -> Version:
    response = client.get(url)
    response.raise_for_status()
    tag = response.json().get("tag_name")
    if not isinstance(tag, str):
        raise LibraryError(f"Latest release response from {url} has no tag_name")
    return _parse_version(tag.removeprefix("v"))


def _download(client: httpx.Client, url: str, directory: Path) -> Path:
    fd, tmp = tempfile.mkstemp(dir=directory, prefix=".bootforge-update-")
    path = Path(tmp)
    try:
        with os.fdopen(fd, "wb") as handle, client.stream("GET", url) as response:
            response.raise_for_status()
            for chunk in response.iter_bytes():
                handle.write(chunk)
    except BaseException:
        path.unlink(missing_ok=True)
        raise
    path.chmod(0o755)
    return path


def _binary_version(path: Path, ctx: TaskContext) -> Version:
    output = ctx.run_command([str(path), "--version"]).stdout.strip()
    return _parse_version(output.removeprefix("bootforge").strip())


def _parse_version(value: str) -> Version:
    try:
        return Version(value)
    except InvalidVersion as exc:
        raise LibraryError(f"Invalid version '{value}'") from exc
