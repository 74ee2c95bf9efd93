from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import httpx
import pytest

from bootforge.executor.context import TaskContext
from bootforge.executor.executor import TaskExecutor
from bootforge.executor.types import LibraryError, RunContext, TaskStatus
from bootforge.libs import LIBRARIES
from bootforge.libs.update_self import (
    UpdateSelfLibrary,
    UpdateSelfOptions,
    default_release_url,
    is_dev_install,
)

from helpers import lib_task

RELEASE_URL = "https://example.com/bootforge/releases/latest"
DOWNLOAD_URL = "https://example.com/bootforge/download/bootforge"


def _script(version: str) -> bytes:
    return f"#!/bin/sh\necho 'bootforge {version}'\n".encode()


class _FakeServer:
    def __init__(self, tag: str = "v9.9.9", binary_version: str = "9.9.9", status: int = 200):
        self.tag = tag
        self.binary_version = binary_version
        self.status = status
        self.requests: list[str] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if self.status != 200:
            return httpx.Response(self.status)
        if url == RELEASE_URL:
            return httpx.Response(200, content=json.dumps({"tag_name": self.tag}))
        if url == DOWNLOAD_URL:
            return httpx.Response(200, content=_script(self.binary_version))
        return httpx.Response(404)


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> _FakeServer:
    fake = _FakeServer()
    real_client = httpx.Client

    def client(**kwargs):
        return real_client(transport=httpx.MockTransport(fake.handler), **kwargs)

    monkeypatch.setattr(httpx, "Client", client)
    return fake


@pytest.fixture
def target(tmp_path: Path) -> Path:
    path = tmp_path / "bin" / "bootforge"
    path.parent.mkdir()
    path.write_bytes(_script("0.0.1"))
    path.chmod(0o755)
    return path


def _run(tmp_path: Path, target: Path, **options) -> TaskStatus:
    ctx = TaskContext(RunContext({"HOME": str(tmp_path)}, tmp_path / "tmp"), "self")
    opts = UpdateSelfOptions(url=DOWNLOAD_URL, target=str(target), **options)
    return UpdateSelfLibrary().run(opts, ctx)


def test_newer_release_replaces_target(tmp_path: Path, target: Path, server) -> None:
    status = _run(tmp_path, target, latest_url=RELEASE_URL)

    assert status is TaskStatus.PASSED
    assert target.read_bytes() == _script("9.9.9")
    assert os.access(target, os.X_OK)
    assert server.requests == [RELEASE_URL, DOWNLOAD_URL]
    assert sorted(p.name for p in target.parent.iterdir()) == ["bootforge"]


def test_latest_release_not_newer_skips_download(
    tmp_path: Path, target: Path, server
) -> None:
    server.tag = "v0.1.0"

    status = _run(tmp_path, target, latest_url=RELEASE_URL)

    assert status is TaskStatus.SKIPPED
    assert server.requests == [RELEASE_URL]
    assert target.read_bytes() == _script("0.0.1")


def test_downloaded_binary_not_newer_is_discarded(
    tmp_path: Path, target: Path, server
) -> None:
    server.binary_version = "0.1.0"

    status = _run(tmp_path, target)

    assert status is TaskStatus.SKIPPED
    assert target.read_bytes() == _script("0.0.1")
    assert sorted(p.name for p in target.parent.iterdir()) == ["bootforge"]


def test_http_error_fails(tmp_path: Path, target: Path, server) -> None:
    server.status = 500

    with pytest.raises(LibraryError):
        _run(tmp_path, target, latest_url=RELEASE_URL)


def test_invalid_release_tag_fails(tmp_path: Path, target: Path, server) -> None:
    server.tag = "not-a-version"

    with pytest.raises(LibraryError):
        _run(tmp_path, target, latest_url=RELEASE_URL)


def test_dev_install_is_left_alone(tmp_path: Path, target: Path, server) -> None:
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")

    assert is_dev_install(target)
    assert _run(tmp_path, target, latest_url=RELEASE_URL) is TaskStatus.SKIPPED
    assert server.requests == []


def test_always_update_ignores_dev_install(tmp_path: Path, target: Path, server) -> None:
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")

    status = _run(tmp_path, target, latest_url=RELEASE_URL, always_update=True)

    assert status is TaskStatus.PASSED


# -------------------------
# Options
# -------------------------


def test_self_runs_without_data() -> None:
    options = UpdateSelfLibrary().parse(None, "self")

    assert options.url == default_release_url()
    assert options.url.startswith("https://")
    assert options.latest_url is None
    assert options.target is None


def test_empty_data_uses_default_url() -> None:
    assert UpdateSelfLibrary().parse({}, "self") == UpdateSelfOptions()


def test_task_without_data_checks_running_executable(
    tmp_path: Path, target: Path, server, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "pyproject.toml").write_text("", encoding="utf-8")
    monkeypatch.setattr(sys, "argv", [str(target)])
    executor = TaskExecutor(RunContext({"HOME": str(tmp_path)}, tmp_path / "tmp"), LIBRARIES)

    result = executor.execute(lib_task("self", "self"))

    assert result.status is TaskStatus.SKIPPED
    assert server.requests == []
