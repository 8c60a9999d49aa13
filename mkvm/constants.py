"""Global constants and path configuration for mkvm."""

from __future__ import annotations

import os
import re
from pathlib import Path

PACKAGE_DIR = Path(__file__).resolve().parent
DATA_DIR = PACKAGE_DIR / "data"
TEMPLATES_DIR = PACKAGE_DIR / "templates"
DEFAULT_CATALOG_PATH = DATA_DIR / "distros.yaml"
NAMES_PATH = DATA_DIR / "names.json"

CLOUD_CONFIG_TEMPLATE_DIR = "cloud-config"
DOMAIN_TEMPLATE = "domain.xml"
# cloud-init's NoCloud datasource only looks at volumes with this label
SEED_VOLUME_LABEL = "cidata"
REQUIRED_SEED_FILES = ("meta-data", "user-data")

LIBVIRT_SOCKET = Path(os.environ.get("LIBVIRT_SOCKET", "/var/run/libvirt/libvirt-sock"))
LIBVIRT_URI = os.environ.get("LIBVIRT_URI", "qemu:///system")
DIAL_TIMEOUT = 2.0

DEFAULT_DISTRO = "alpine-edge"
DEFAULT_ZVOL_PREFIX = "rpool/mkvm-test/"
DEFAULT_MEMORY_MB = 512
DEFAULT_CPUS = 2
DEFAULT_NETWORK = "default"
ZVOL_DEVICE_ROOT = Path("/dev/zvol")
ZVOL_SETTLE_TIMEOUT = 10.0

IMAGE_SUBDIR = "qcow2"
SEED_SUBDIR = "seed"

TRUTHY = {"1", "true", "yes", "on"}
SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
MAC_ADDRESS_RE = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")
VM_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

_LOG_VERBOSE = os.environ.get("LOG_VERBOSE", "").lower() in TRUTHY


def default_cache_dir() -> Path:
    """Return ``$XDG_CACHE_HOME/within/mkvm``, falling back to ``~/.cache``."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "within" / "mkvm"
