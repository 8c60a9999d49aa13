"""libvirt domain XML generation for mkvm."""

from __future__ import annotations

from typing import Optional

import jinja2

from mkvm.constants import DOMAIN_TEMPLATE
from mkvm.models import DomainDescriptor
from mkvm.rendering import render_template, template_environment


class DomainComposer:
    def __init__(self, env: Optional[jinja2.Environment] = None, template: str = DOMAIN_TEMPLATE) -> None:
        self.env = env or template_environment()
        self.template = template

    def render(self, descriptor: DomainDescriptor) -> str:
        # libvirt wants KiB here, callers deal in MB
        return render_template(
            self.env,
            self.template,
            name=descriptor.name,
            vm_id=descriptor.vm_id,
            memory_kb=descriptor.memory_kb,
            cpus=descriptor.cpus,
            volume_device_path=str(descriptor.volume_device_path),
            seed_path=str(descriptor.seed_path),
            mac_address=descriptor.mac_address,
            network=descriptor.network,
        )
