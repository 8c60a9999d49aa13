"""Session with the local libvirt daemon."""

from __future__ import annotations

import importlib
import socket
from pathlib import Path
from types import ModuleType
from typing import Optional

from mkvm.constants import DIAL_TIMEOUT, LIBVIRT_SOCKET, LIBVIRT_URI
from mkvm.exceptions import AuthorizationDenied, ConnectRejected, CreateError, DialTimeout, ManagerError
from mkvm.utils import log

LIBVIRT = None

_AUTH_ERROR_CODES = (
    "VIR_ERR_AUTH_FAILED",
    "VIR_ERR_AUTH_CANCELLED",
    "VIR_ERR_AUTH_UNAVAILABLE",
    "VIR_ERR_ACCESS_DENIED",
)


def get_libvirt() -> ModuleType:
    global LIBVIRT

    if not LIBVIRT:
        try:
            LIBVIRT = importlib.import_module("libvirt")
        except ImportError as exc:
            raise ConnectRejected(f"libvirt python bindings not available: {exc}") from exc

    return LIBVIRT


def _error_message(exc: Exception) -> str:
    getter = getattr(exc, "get_error_message", None)
    message = getter() if callable(getter) else None
    return message or str(exc)


class HypervisorClient:
    """One libvirt connection, held for a single provisioning run."""

    def __init__(
        self,
        socket_path: Path = LIBVIRT_SOCKET,
        uri: str = LIBVIRT_URI,
        dial_timeout: float = DIAL_TIMEOUT,
        libvirt_module: Optional[ModuleType] = None,
    ) -> None:
        self.socket_path = socket_path
        self.uri = uri
        self.dial_timeout = dial_timeout
        self._libvirt = libvirt_module
        self.conn = None

    @property
    def libvirt(self) -> ModuleType:
        if self._libvirt is None:
            self._libvirt = get_libvirt()
        return self._libvirt

    def __enter__(self) -> "HypervisorClient":
        self.connect()
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _dial(self) -> None:
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        sock.settimeout(self.dial_timeout)
        try:
            sock.connect(str(self.socket_path))
        except socket.timeout as exc:
            raise DialTimeout(f"can't dial libvirt at {self.socket_path}: timed out after {self.dial_timeout}s") from exc
        except OSError as exc:
            raise DialTimeout(f"can't dial libvirt at {self.socket_path}: {exc}") from exc
        finally:
            sock.close()

    def _is_auth_error(self, exc: Exception) -> bool:
        getter = getattr(exc, "get_error_code", None)
        if not callable(getter):
            return False
        code = getter()
        auth_codes = {getattr(self.libvirt, name) for name in _AUTH_ERROR_CODES if hasattr(self.libvirt, name)}
        return code in auth_codes

    def connect(self) -> None:
        if self.conn is not None:
            return
        self._dial()
        log("DEBUG", f"Dialed {self.socket_path}, opening {self.uri}")

        try:
            conn = self.libvirt.open(self.uri)
        except self.libvirt.libvirtError as exc:
            message = _error_message(exc)
            if self._is_auth_error(exc):
                raise AuthorizationDenied(f"can't auth with polkit: {message}") from exc
            raise ConnectRejected(f"can't connect to {self.uri}: {message}") from exc
        if conn is None:
            raise ConnectRejected(f"Failed to open libvirt connection to {self.uri}")
        self.conn = conn
        log("DEBUG", f"Connected to {self.uri}")

    def create_domain(self, xml: str) -> str:
        """Create and start a transient domain, returning its name."""
        if self.conn is None:
            raise ManagerError("libvirt connection not established")
        try:
            domain = self.conn.createXML(xml, 0)
        except self.libvirt.libvirtError as exc:
            raise CreateError(_error_message(exc)) from exc
        if domain is None:
            raise CreateError("libvirt returned no domain")
        return domain.name()

    def close(self) -> None:
        if self.conn is not None:
            try:
                self.conn.close()
            except self.libvirt.libvirtError as exc:
                log("WARN", f"Error closing libvirt connection: {_error_message(exc)}")
            self.conn = None
