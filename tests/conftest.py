"""Shared test fixtures: fake command runner, HTTP session and catalog."""

from __future__ import annotations

import shutil
import tempfile
import textwrap
from pathlib import Path
from typing import Callable, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from mkvm.models import CommandResult, DistroRecord


class FakeRunner:
    """Records commands instead of running them.

    ``results`` maps a program name (``zfs``, ``qemu-img``, ``genisoimage``)
    to the result it should return; ``hooks`` run with the command before it
    "completes", e.g. to inspect files that only exist during the call.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.privileged: List[bool] = []
        self.results: Dict[str, CommandResult] = {}
        self.hooks: Dict[str, Callable[[List[str]], None]] = {}

    def run(self, cmd: List[str], privileged: bool = False) -> CommandResult:
        self.calls.append(list(cmd))
        self.privileged.append(privileged)
        hook = self.hooks.get(cmd[0])
        if hook is not None:
            hook(cmd)
        return self.results.get(cmd[0], CommandResult(0, ""))

    def programs(self) -> List[str]:
        return [cmd[0] for cmd in self.calls]


def make_response(status_code: int = 200, chunks: Optional[List[bytes]] = None, reason: str = "OK"):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.headers = {}
    response.iter_content.return_value = iter(chunks if chunks is not None else [b"qcow", b"data"])
    return response


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_session():
    session = MagicMock()
    session.get.side_effect = lambda *a, **kw: make_response()
    return session


@pytest.fixture
def alpine() -> DistroRecord:
    return DistroRecord(
        name="alpine-edge",
        download_url="http://x/alpine.qcow2",
        checksum="abc123",
        min_size_gb=4,
    )


@pytest.fixture
def catalog_file(tmp_path) -> Path:
    path = tmp_path / "distros.yaml"
    path.write_text(
        textwrap.dedent(
            """
            distros:
              - name: alpine-edge
                downloadURL: http://x/alpine.qcow2
                sha256Sum: abc123
                minSize: 4
              - name: ubuntu-22.04
                downloadURL: http://x/jammy.img
                sha256Sum: def456
                minSize: 10
            """
        ).lstrip()
    )
    return path


@pytest.fixture
def short_tmp():
    """A short temporary directory; AF_UNIX socket paths are length-limited."""
    path = Path(tempfile.mkdtemp(prefix="mkvm"))
    yield path
    shutil.rmtree(path, ignore_errors=True)


@pytest.fixture
def response_factory():
    return make_response
