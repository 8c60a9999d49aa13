"""Data models for mkvm."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple, Optional


class CommandResult(NamedTuple):
    returncode: int
    output: str


@dataclass(frozen=True)
class DistroRecord:
    name: str
    download_url: str
    checksum: str  # sha256, doubles as the image cache key
    min_size_gb: int


@dataclass
class ProvisionOptions:
    """Operator input before it is merged with catalog defaults."""

    distro: str
    vm_name: Optional[str] = None
    size_gb: int = 0
    memory_mb: int = 512
    cpus: int = 2
    network: str = "default"
    login_user: Optional[str] = None
    password: Optional[str] = None
    ssh_pubkey: Optional[str] = None


@dataclass
class ProvisionRequest:
    vm_name: str
    distro: DistroRecord
    requested_size_gb: int
    memory_mb: int
    cpus: int = 2
    network: str = "default"
    login_user: Optional[str] = None
    password: Optional[str] = None
    ssh_pubkey: Optional[str] = None

    @property
    def effective_size_gb(self) -> int:
        return max(self.requested_size_gb, self.distro.min_size_gb)

    @property
    def memory_kb(self) -> int:
        return self.memory_mb * 1024


@dataclass(frozen=True)
class CachedImage:
    checksum: str
    local_path: Path


@dataclass(frozen=True)
class SeedVolume:
    iso_path: Path


@dataclass(frozen=True)
class StorageVolume:
    namespace: str
    name: str
    size_gb: int
    device_path: Path

    @property
    def full_name(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class DomainDescriptor:
    vm_id: str
    name: str
    memory_kb: int
    volume_device_path: Path
    seed_path: Path
    mac_address: str
    cpus: int = 2
    network: str = "default"
