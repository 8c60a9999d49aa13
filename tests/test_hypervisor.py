"""Tests for mkvm.hypervisor module."""

from __future__ import annotations

import socket
import types
from unittest.mock import MagicMock, patch

import pytest

from mkvm.exceptions import AuthorizationDenied, ConnectRejected, CreateError, DialTimeout, ManagerError
from mkvm.hypervisor import HypervisorClient


class FakeLibvirtError(Exception):
    def __init__(self, message, code=1):
        super().__init__(message)
        self._message = message
        self._code = code

    def get_error_message(self):
        return self._message

    def get_error_code(self):
        return self._code


def _libvirt_module(conn=None):
    module = types.ModuleType("libvirt")
    module.libvirtError = FakeLibvirtError
    module.VIR_ERR_AUTH_FAILED = 45
    module.VIR_ERR_AUTH_CANCELLED = 79
    module.VIR_ERR_ACCESS_DENIED = 88
    module.open = MagicMock(return_value=conn if conn is not None else MagicMock())
    return module


@pytest.fixture
def libvirt_socket(short_tmp):
    path = short_tmp / "libvirt-sock"
    server = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    server.bind(str(path))
    server.listen(4)
    yield path
    server.close()


class TestConnect:
    def test_dials_then_opens_uri(self, libvirt_socket):
        module = _libvirt_module()
        client = HypervisorClient(socket_path=libvirt_socket, uri="qemu:///system", libvirt_module=module)
        client.connect()
        module.open.assert_called_once_with("qemu:///system")
        assert client.conn is module.open.return_value

    def test_connect_is_idempotent(self, libvirt_socket):
        module = _libvirt_module()
        client = HypervisorClient(socket_path=libvirt_socket, libvirt_module=module)
        client.connect()
        client.connect()
        assert module.open.call_count == 1

    def test_missing_socket_is_dial_failure(self, short_tmp):
        module = _libvirt_module()
        client = HypervisorClient(socket_path=short_tmp / "absent", libvirt_module=module)
        with pytest.raises(DialTimeout, match="can't dial libvirt"):
            client.connect()
        module.open.assert_not_called()

    def test_dial_timeout(self, short_tmp):
        fake_sock = MagicMock()
        fake_sock.connect.side_effect = socket.timeout("timed out")
        client = HypervisorClient(socket_path=short_tmp / "sock", dial_timeout=2.0, libvirt_module=_libvirt_module())
        with patch("mkvm.hypervisor.socket.socket", return_value=fake_sock):
            with pytest.raises(DialTimeout, match="timed out after 2.0s"):
                client.connect()
        fake_sock.settimeout.assert_called_once_with(2.0)
        fake_sock.close.assert_called_once()

    @pytest.mark.parametrize("code", [45, 79, 88])
    def test_auth_errors_are_authorization_denied(self, libvirt_socket, code):
        module = _libvirt_module()
        module.open.side_effect = FakeLibvirtError("authentication unavailable: no polkit agent available", code)
        client = HypervisorClient(socket_path=libvirt_socket, libvirt_module=module)
        with pytest.raises(AuthorizationDenied, match="no polkit agent"):
            client.connect()
        assert client.conn is None

    def test_other_errors_are_connect_rejected(self, libvirt_socket):
        module = _libvirt_module()
        module.open.side_effect = FakeLibvirtError("Failed to connect socket: Connection refused", 38)
        client = HypervisorClient(socket_path=libvirt_socket, libvirt_module=module)
        with pytest.raises(ConnectRejected, match="Connection refused"):
            client.connect()

    def test_none_connection_is_rejected(self, libvirt_socket):
        module = _libvirt_module()
        module.open.return_value = None
        client = HypervisorClient(socket_path=libvirt_socket, libvirt_module=module)
        with pytest.raises(ConnectRejected):
            client.connect()


class TestCreateDomain:
    def _connected(self, libvirt_socket):
        conn = MagicMock()
        module = _libvirt_module(conn)
        client = HypervisorClient(socket_path=libvirt_socket, libvirt_module=module)
        client.connect()
        return client, conn

    def test_creates_and_starts(self, libvirt_socket):
        client, conn = self._connected(libvirt_socket)
        conn.createXML.return_value.name.return_value = "test1"
        assert client.create_domain("<domain/>") == "test1"
        conn.createXML.assert_called_once_with("<domain/>", 0)

    def test_daemon_message_is_verbatim(self, libvirt_socket):
        client, conn = self._connected(libvirt_socket)
        message = "operation failed: domain 'test1' already exists with uuid 6b7a3c36"
        conn.createXML.side_effect = FakeLibvirtError(message)
        with pytest.raises(CreateError) as exc:
            client.create_domain("<domain/>")
        assert exc.value.message == message
        assert str(exc.value) == message

    def test_requires_connection(self):
        client = HypervisorClient(libvirt_module=_libvirt_module())
        with pytest.raises(ManagerError, match="not established"):
            client.create_domain("<domain/>")


class TestClose:
    def test_context_manager_closes(self, libvirt_socket):
        conn = MagicMock()
        with HypervisorClient(socket_path=libvirt_socket, libvirt_module=_libvirt_module(conn)) as client:
            assert client.conn is conn
        conn.close.assert_called_once()
        assert client.conn is None

    def test_close_without_connect_is_noop(self):
        HypervisorClient(libvirt_module=_libvirt_module()).close()
