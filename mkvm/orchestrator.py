"""The provisioning pipeline: plan, confirm, then create one VM.

Every stage after confirmation has a side effect outside this process.
Stages run strictly in order and the first error ends the run in the
``FAILED`` state; nothing is retried or rolled back. Ctrl-C ends the run
the same way, as an ``Interrupted`` failure. The one
resource that outlives a failed run unnoticed is the zvol, so once it exists
a failure carries the command that destroys it.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from mkvm.catalog import DistroCatalog
from mkvm.domain import DomainComposer
from mkvm.exceptions import Interrupted, ManagerError
from mkvm.hypervisor import HypervisorClient
from mkvm.identity import IdentityGenerator
from mkvm.image_cache import ImageCache
from mkvm.models import (
    CachedImage,
    DomainDescriptor,
    ProvisionOptions,
    ProvisionRequest,
    SeedVolume,
    StorageVolume,
)
from mkvm.seed import SeedBuilder
from mkvm.storage import VolumeProvisioner, normalize_namespace
from mkvm.utils import log


class Stage(enum.Enum):
    PLANNING = "planning"
    AWAITING_CONFIRMATION = "awaiting-confirmation"
    ACQUIRING = "acquiring"
    SEED_BUILDING = "seed-building"
    PROVISIONING_STORAGE = "provisioning-storage"
    COMPOSING = "composing"
    CREATING = "creating"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Plan:
    request: ProvisionRequest
    mac_address: str
    zvol: str


@dataclass
class Failure:
    stage: Stage
    cause: ManagerError
    remedy: Optional[str] = None


@dataclass
class ProvisionOutcome:
    state: Stage
    request: Optional[ProvisionRequest] = None
    failure: Optional[Failure] = None
    domain_name: Optional[str] = None
    image: Optional[CachedImage] = None
    seed: Optional[SeedVolume] = None
    volume: Optional[StorageVolume] = None

    @property
    def ok(self) -> bool:
        return self.state is Stage.DONE


class Orchestrator:
    def __init__(
        self,
        catalog: DistroCatalog,
        identity: IdentityGenerator,
        hypervisor: HypervisorClient,
        image_cache: ImageCache,
        seed_builder: SeedBuilder,
        provisioner: VolumeProvisioner,
        composer: DomainComposer,
        zvol_prefix: str,
        confirm: Callable[[Plan], None],
    ) -> None:
        self.catalog = catalog
        self.identity = identity
        self.hypervisor = hypervisor
        self.image_cache = image_cache
        self.seed_builder = seed_builder
        self.provisioner = provisioner
        self.composer = composer
        self.zvol_prefix = zvol_prefix
        self.confirm = confirm
        self.state = Stage.PLANNING

    def _enter(self, stage: Stage) -> None:
        log("DEBUG", f"{self.state.value} -> {stage.value}")
        self.state = stage

    def plan(self, options: ProvisionOptions) -> Plan:
        distro = self.catalog.resolve(options.distro)
        vm_name = options.vm_name or self.identity.random_name()
        request = ProvisionRequest(
            vm_name=vm_name,
            distro=distro,
            requested_size_gb=options.size_gb,
            memory_mb=options.memory_mb,
            cpus=options.cpus,
            network=options.network,
            login_user=options.login_user,
            password=options.password,
            ssh_pubkey=options.ssh_pubkey,
        )
        mac_address = self.identity.random_mac()
        zvol = f"{normalize_namespace(self.zvol_prefix)}/{vm_name}"
        self.hypervisor.connect()
        return Plan(request=request, mac_address=mac_address, zvol=zvol)

    def run(self, options: ProvisionOptions) -> ProvisionOutcome:
        self.state = Stage.PLANNING
        outcome = ProvisionOutcome(state=Stage.PLANNING)
        try:
            return self._run(options, outcome)
        except KeyboardInterrupt as exc:
            cause = Interrupted(f"interrupted during {self.state.value}")
            cause.__cause__ = exc
            return self._fail(outcome, cause)
        except Exception as exc:
            if isinstance(exc, ManagerError):
                cause = exc
            else:
                cause = ManagerError(f"unexpected {type(exc).__name__}: {exc}")
                cause.__cause__ = exc
            return self._fail(outcome, cause)
        finally:
            self.hypervisor.close()

    def _fail(self, outcome: ProvisionOutcome, cause: ManagerError) -> ProvisionOutcome:
        failed_at = self.state
        remedy = None
        if outcome.volume is not None:
            remedy = self.provisioner.destroy_command(outcome.volume)
        self._enter(Stage.FAILED)
        outcome.state = Stage.FAILED
        outcome.failure = Failure(stage=failed_at, cause=cause, remedy=remedy)
        return outcome

    def _run(self, options: ProvisionOptions, outcome: ProvisionOutcome) -> ProvisionOutcome:
        plan = self.plan(options)
        request = plan.request
        outcome.request = request

        self._enter(Stage.AWAITING_CONFIRMATION)
        self.confirm(plan)

        self._enter(Stage.ACQUIRING)
        outcome.image = self.image_cache.ensure(request.distro.checksum, request.distro.download_url)

        self._enter(Stage.SEED_BUILDING)
        outcome.seed = self.seed_builder.build(
            request.vm_name,
            request.distro.name,
            login_user=request.login_user,
            password=request.password,
            ssh_pubkey=request.ssh_pubkey,
        )

        self._enter(Stage.PROVISIONING_STORAGE)
        outcome.volume = self.provisioner.create_volume(self.zvol_prefix, request.vm_name, request.effective_size_gb)
        self.provisioner.import_image(outcome.image.local_path, outcome.volume.device_path)

        self._enter(Stage.COMPOSING)
        descriptor = DomainDescriptor(
            vm_id=str(uuid.uuid4()),
            name=request.vm_name,
            memory_kb=request.memory_kb,
            volume_device_path=outcome.volume.device_path,
            seed_path=outcome.seed.iso_path,
            mac_address=plan.mac_address,
            cpus=request.cpus,
            network=request.network,
        )
        xml = self.composer.render(descriptor)

        self._enter(Stage.CREATING)
        outcome.domain_name = self.hypervisor.create_domain(xml)

        self._enter(Stage.DONE)
        outcome.state = Stage.DONE
        return outcome
