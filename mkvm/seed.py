"""cloud-init NoCloud seed ISO generation."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Dict, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

import jinja2

from mkvm.constants import CLOUD_CONFIG_TEMPLATE_DIR, REQUIRED_SEED_FILES, SEED_VOLUME_LABEL
from mkvm.exceptions import PackagingFailed, TemplateRenderFailed
from mkvm.models import SeedVolume
from mkvm.rendering import render_template, template_environment
from mkvm.utils import CommandRunner, ensure_directory, hash_password, log


class SeedBuilder:
    def __init__(
        self,
        seed_dir: Path,
        runner: CommandRunner,
        env: Optional[jinja2.Environment] = None,
        bundle: str = CLOUD_CONFIG_TEMPLATE_DIR,
    ) -> None:
        self.seed_dir = seed_dir
        self.runner = runner
        self.env = env or template_environment()
        self.bundle = bundle

    def iso_path(self, vm_name: str, distro_name: str) -> Path:
        return self.seed_dir / f"{vm_name}-{distro_name}.iso"

    def render(
        self,
        vm_name: str,
        login_user: Optional[str] = None,
        password: Optional[str] = None,
        ssh_pubkey: Optional[str] = None,
    ) -> Dict[str, str]:
        """Render every document of the cloud-config bundle, keyed by file name."""
        params = {
            "name": vm_name,
            "login_user": login_user,
            "password_hash": hash_password(password) if password else None,
            "ssh_pubkey": ssh_pubkey,
        }
        prefix = f"{self.bundle}/"
        names = self.env.list_templates(filter_func=lambda t: t.startswith(prefix))
        documents = {name[len(prefix):]: render_template(self.env, name, **params) for name in sorted(names)}

        missing = [name for name in REQUIRED_SEED_FILES if name not in documents]
        if missing:
            raise TemplateRenderFailed(f"cloud-config bundle {self.bundle} lacks {', '.join(missing)}")

        try:
            user_data = yaml.safe_load(documents["user-data"])
        except yaml.YAMLError as exc:
            raise TemplateRenderFailed(f"rendered user-data is not valid YAML: {exc}") from exc
        if not isinstance(user_data, dict):
            raise TemplateRenderFailed(
                f"rendered user-data should be a YAML mapping, got {type(user_data).__name__}"
            )
        return documents

    def build(
        self,
        vm_name: str,
        distro_name: str,
        login_user: Optional[str] = None,
        password: Optional[str] = None,
        ssh_pubkey: Optional[str] = None,
    ) -> SeedVolume:
        documents = self.render(vm_name, login_user=login_user, password=password, ssh_pubkey=ssh_pubkey)
        ensure_directory(self.seed_dir)
        iso_path = self.iso_path(vm_name, distro_name)

        with tempfile.TemporaryDirectory(prefix="mkvm") as tmpdir:
            tmp = Path(tmpdir)
            for name, content in documents.items():
                (tmp / name).write_text(content, encoding="utf-8")

            cmd = [
                "genisoimage",
                "-output",
                str(iso_path),
                "-volid",
                SEED_VOLUME_LABEL,
                "-joliet",
                "-rock",
            ]
            cmd.extend(str(tmp / name) for name in documents)
            result = self.runner.run(cmd)
            if result.returncode != 0:
                raise PackagingFailed(
                    f"genisoimage exited with status {result.returncode}: {result.output.strip()}"
                )

        log("SUCCESS", f"Built seed image {iso_path}")
        return SeedVolume(iso_path=iso_path)
