"""ZFS zvol provisioning for mkvm."""

from __future__ import annotations

from pathlib import Path

from mkvm.constants import ZVOL_DEVICE_ROOT, ZVOL_SETTLE_TIMEOUT
from mkvm.exceptions import ImageImportFailed, VolumeCreateFailed
from mkvm.models import StorageVolume
from mkvm.utils import CommandRunner, log, wait_for_path


def normalize_namespace(namespace: str) -> str:
    """``rpool/mkvm-test/`` and ``rpool/mkvm-test`` name the same dataset."""
    return namespace.strip().strip("/")


class VolumeProvisioner:
    """Creates zvols and writes base images onto them.

    Nothing here is undone on failure; a created zvol outlives the run.
    """

    def __init__(
        self,
        runner: CommandRunner,
        device_root: Path = ZVOL_DEVICE_ROOT,
        settle_timeout: float = ZVOL_SETTLE_TIMEOUT,
    ) -> None:
        self.runner = runner
        self.device_root = device_root
        self.settle_timeout = settle_timeout

    def device_path(self, namespace: str, name: str) -> Path:
        return self.device_root / normalize_namespace(namespace) / name

    def create_volume(self, namespace: str, name: str, size_gb: int) -> StorageVolume:
        namespace = normalize_namespace(namespace)
        if not namespace:
            raise VolumeCreateFailed("zvol namespace must not be empty")
        if not name or "/" in name:
            raise VolumeCreateFailed(f"invalid zvol name '{name}'")
        if size_gb <= 0:
            raise VolumeCreateFailed(f"zvol size must be positive (got {size_gb})")

        zvol = f"{namespace}/{name}"
        log("INFO", f"Creating zvol {zvol} ({size_gb} GB)")
        # zfs create -V 20G rpool/safe/vm/sena
        result = self.runner.run(["zfs", "create", "-V", f"{size_gb}G", zvol], privileged=True)
        if result.returncode != 0:
            raise VolumeCreateFailed(f"can't create zvol {zvol}: {result.output.strip()}")

        device = self.device_path(namespace, name)
        if not wait_for_path(device, timeout=self.settle_timeout):
            log("WARN", f"{device} has not appeared yet; udev may still be settling")
        return StorageVolume(namespace=namespace, name=name, size_gb=size_gb, device_path=device)

    def import_image(self, source: Path, device_path: Path) -> None:
        log("INFO", f"Writing {source} to {device_path}")
        result = self.runner.run(
            ["qemu-img", "convert", "-O", "raw", str(source), str(device_path)],
            privileged=True,
        )
        if result.returncode != 0:
            raise ImageImportFailed(f"can't import qcow2 {source} into {device_path}: {result.output.strip()}")
        log("SUCCESS", f"Imported base image into {device_path}")

    @staticmethod
    def destroy_command(volume: StorageVolume) -> str:
        return f"sudo zfs destroy {volume.full_name}"
