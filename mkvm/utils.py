"""Utility functions for mkvm."""

from __future__ import annotations

import os
import subprocess
import time
from pathlib import Path
from typing import List, Optional

try:
    import bcrypt  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("bcrypt is required but not installed") from exc

from mkvm import constants
from mkvm.constants import TRUTHY
from mkvm.exceptions import ManagerError
from mkvm.models import CommandResult


def log(level: str, message: str) -> None:
    """Lightweight structured logging with a colour per level."""
    if level == "DEBUG" and not constants._LOG_VERBOSE:
        return
    colours = {
        "INFO": "\033[0;34m",
        "WARN": "\033[1;33m",
        "ERROR": "\033[0;31m",
        "SUCCESS": "\033[0;32m",
        "DEBUG": "\033[0;90m",
    }
    colour = colours.get(level, "")
    reset = "\033[0m" if colour else ""
    print(f"{colour}[{level}]{reset} {message}", flush=True)


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def get_env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.lower() in TRUTHY


def parse_int(name: str, raw: str, min_val: int = 1, max_val: Optional[int] = None) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise ManagerError(f"{name} must be an integer (got '{raw}')")
    if value < min_val:
        raise ManagerError(f"{name} must be >= {min_val} (got {value})")
    if max_val is not None and value > max_val:
        raise ManagerError(f"{name} must be <= {max_val} (got {value})")
    return value


def ensure_directory(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def wait_for_path(path: Path, timeout: float = 10.0, interval: float = 0.1) -> bool:
    """Poll for a filesystem path to show up (e.g., a zvol device node)."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if path.exists():
            return True
        time.sleep(interval)
    return path.exists()


def hash_password(password: str) -> str:
    """Generate a bcrypt hash for cloud-init."""
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    return hashed.decode("utf-8")


class CommandRunner:
    """Run external commands, elevating privileged ones through sudo.

    Output is captured with stderr folded into stdout so failures can be
    reported verbatim.
    """

    def __init__(self, sudo: bool = True) -> None:
        self.sudo = sudo

    def _needs_sudo(self) -> bool:
        if not self.sudo:
            return False
        return not (hasattr(os, "geteuid") and os.geteuid() == 0)

    def run(self, cmd: List[str], privileged: bool = False) -> CommandResult:
        if privileged and self._needs_sudo():
            cmd = ["sudo", *cmd]
        log("DEBUG", f"Running: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            return CommandResult(127, f"{cmd[0]}: command not found")
        return CommandResult(result.returncode, result.stdout or "")
