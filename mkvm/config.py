"""Command line and environment configuration for mkvm."""

from __future__ import annotations

import argparse
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from mkvm.constants import (
    DEFAULT_CATALOG_PATH,
    DEFAULT_CPUS,
    DEFAULT_DISTRO,
    DEFAULT_MEMORY_MB,
    DEFAULT_NETWORK,
    DEFAULT_ZVOL_PREFIX,
    LIBVIRT_SOCKET,
    LIBVIRT_URI,
    SEED_SUBDIR,
    VM_NAME_RE,
    default_cache_dir,
)
from mkvm.exceptions import ManagerError
from mkvm.models import ProvisionOptions
from mkvm.utils import get_env, get_env_bool, parse_int

LOGIN_USER_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")


@dataclass
class Settings:
    catalog_path: Path
    cache_dir: Path
    zvol_prefix: str
    libvirt_socket: Path
    libvirt_uri: str
    verify_checksum: bool = False

    @property
    def seed_dir(self) -> Path:
        return self.cache_dir / SEED_SUBDIR


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mkvm",
        description="Create a libvirt VM backed by a ZFS zvol from a cloud image",
    )
    parser.add_argument(
        "--distro",
        default=get_env("MKVM_DISTRO", DEFAULT_DISTRO),
        help="the linux distro to install in the VM",
    )
    parser.add_argument(
        "--name",
        default=get_env("MKVM_NAME"),
        help="the name of the VM, defaults to a random name",
    )
    parser.add_argument(
        "--zvol-prefix",
        default=get_env("MKVM_ZVOL_PREFIX", DEFAULT_ZVOL_PREFIX),
        help="the prefix to use for zvol names",
    )
    parser.add_argument(
        "--zvol-size",
        default=get_env("MKVM_ZVOL_SIZE", "0"),
        help="the number of gigabytes for the virtual machine disk (0 = distro minimum)",
    )
    parser.add_argument(
        "--memory",
        default=get_env("MKVM_MEMORY", str(DEFAULT_MEMORY_MB)),
        help="the number of megabytes of ram for the virtual machine",
    )
    parser.add_argument("--cpus", default=get_env("MKVM_CPUS", str(DEFAULT_CPUS)), help="number of vCPUs")
    parser.add_argument(
        "--network",
        default=get_env("MKVM_NETWORK", DEFAULT_NETWORK),
        help="libvirt network to attach the VM to",
    )
    parser.add_argument("--user", default=get_env("MKVM_USER"), help="login user to create via cloud-init")
    parser.add_argument("--password", default=get_env("MKVM_PASSWORD"), help="password for --user")
    parser.add_argument("--ssh-key", default=get_env("MKVM_SSH_PUBKEY"), help="SSH public key for --user")
    parser.add_argument(
        "--catalog",
        default=get_env("MKVM_CATALOG", str(DEFAULT_CATALOG_PATH)),
        help="path to the distro catalog (YAML)",
    )
    parser.add_argument(
        "--cache-dir",
        default=get_env("MKVM_CACHE_DIR"),
        help="where base images and seed ISOs are kept (default: ~/.cache/within/mkvm)",
    )
    parser.add_argument("--libvirt-socket", default=str(LIBVIRT_SOCKET), help="libvirt daemon socket")
    parser.add_argument("--libvirt-uri", default=LIBVIRT_URI, help="libvirt connection URI")
    parser.add_argument(
        "--verify-checksum",
        action="store_true",
        default=get_env_bool("MKVM_VERIFY_CHECKSUM", False),
        help="check downloaded images against the catalog sha256 before caching them",
    )
    parser.add_argument("--list-distros", action="store_true", help="list known distributions and exit")
    return parser


def _optional(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    return raw.strip() or None


def resolve_config(args: argparse.Namespace) -> Tuple[Settings, ProvisionOptions]:
    name = _optional(args.name)
    if name is not None and not VM_NAME_RE.match(name):
        raise ManagerError(f"Invalid VM name '{name}'. Use letters, digits, '.', '_' or '-'")

    login_user = _optional(args.user)
    password = _optional(args.password)
    ssh_pubkey = _optional(args.ssh_key)
    if login_user is not None and not LOGIN_USER_RE.match(login_user):
        raise ManagerError(f"Invalid login user '{login_user}'")
    if (password or ssh_pubkey) and not login_user:
        raise ManagerError("--password and --ssh-key require --user")

    zvol_prefix = (args.zvol_prefix or "").strip()
    if not zvol_prefix.strip("/"):
        raise ManagerError("--zvol-prefix must name a ZFS dataset")

    cache_dir = _optional(args.cache_dir)
    settings = Settings(
        catalog_path=Path(args.catalog),
        cache_dir=Path(cache_dir).expanduser() if cache_dir else default_cache_dir(),
        zvol_prefix=zvol_prefix,
        libvirt_socket=Path(args.libvirt_socket),
        libvirt_uri=args.libvirt_uri,
        verify_checksum=bool(args.verify_checksum),
    )
    options = ProvisionOptions(
        distro=(args.distro or "").strip(),
        vm_name=name,
        size_gb=parse_int("--zvol-size", str(args.zvol_size), min_val=0),
        memory_mb=parse_int("--memory", str(args.memory)),
        cpus=parse_int("--cpus", str(args.cpus)),
        network=(args.network or DEFAULT_NETWORK).strip(),
        login_user=login_user,
        password=password,
        ssh_pubkey=ssh_pubkey,
    )
    return settings, options
