"""CLI entry points for mkvm."""

from __future__ import annotations

from typing import List, Optional

from mkvm.catalog import DistroCatalog
from mkvm.config import Settings, build_parser, resolve_config
from mkvm.domain import DomainComposer
from mkvm.exceptions import CreateError, DistroNotFound, Interrupted, ManagerError
from mkvm.hypervisor import HypervisorClient
from mkvm.identity import IdentityGenerator
from mkvm.image_cache import ImageCache
from mkvm.orchestrator import Orchestrator, Plan, ProvisionOutcome
from mkvm.seed import SeedBuilder
from mkvm.storage import VolumeProvisioner
from mkvm.utils import CommandRunner, log


def list_distros(catalog: DistroCatalog) -> None:
    """Print available distributions."""
    records = catalog.list()
    if not records:
        log("WARN", "No distributions found")
        return
    max_key = max(len(record.name) for record in records)
    for record in records:
        print(f"  {record.name:<{max_key}}  (min {record.min_size_gb} GB)  {record.download_url}")


def print_plan(plan: Plan) -> None:
    request = plan.request
    log("INFO", "plan:")
    log("INFO", f"name: {request.vm_name}")
    log("INFO", f"zvol: {plan.zvol} ({request.effective_size_gb} GB)")
    log("INFO", f"base image url: {request.distro.download_url}")
    log("INFO", f"mac address: {plan.mac_address}")
    log("INFO", f"ram: {request.memory_mb} MB")


def confirm_plan(plan: Plan) -> None:
    """Show the plan and block until the operator presses enter.

    Any input, including end of file, counts as a yes.
    """
    print_plan(plan)
    try:
        input("press enter if this looks okay:")
    except EOFError:
        print(flush=True)


def report(outcome: ProvisionOutcome) -> int:
    if outcome.ok:
        log("SUCCESS", f"created {outcome.domain_name}")
        return 0

    failure = outcome.failure
    assert failure is not None
    cause = failure.cause
    if isinstance(cause, DistroNotFound):
        log("ERROR", str(cause))
        print("Here are distros I know about:")
        for name in cause.known:
            print(name)
    elif isinstance(cause, Interrupted):
        log("WARN", str(cause))
    elif isinstance(cause, CreateError) and outcome.request is not None:
        log("ERROR", f"can't create domain for {outcome.request.vm_name}: {cause.message}")
    else:
        log("ERROR", f"{failure.stage.value} failed: {cause}")

    if failure.remedy:
        log("WARN", "you should run this command:")
        print(flush=True)
        print(failure.remedy, flush=True)
    return 130 if isinstance(cause, Interrupted) else 1


def build_orchestrator(settings: Settings, catalog: DistroCatalog) -> Orchestrator:
    runner = CommandRunner()
    return Orchestrator(
        catalog=catalog,
        identity=IdentityGenerator(),
        hypervisor=HypervisorClient(socket_path=settings.libvirt_socket, uri=settings.libvirt_uri),
        image_cache=ImageCache(settings.cache_dir, verify_checksum=settings.verify_checksum),
        seed_builder=SeedBuilder(settings.seed_dir, runner),
        provisioner=VolumeProvisioner(runner),
        composer=DomainComposer(),
        zvol_prefix=settings.zvol_prefix,
        confirm=confirm_plan,
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings, options = resolve_config(args)
        catalog = DistroCatalog.load(settings.catalog_path)
    except ManagerError as exc:
        log("ERROR", str(exc))
        return 1

    if args.list_distros:
        list_distros(catalog)
        return 0

    orchestrator = build_orchestrator(settings, catalog)
    try:
        outcome = orchestrator.run(options)
    except KeyboardInterrupt:
        log("WARN", "Interrupted")
        return 130
    except Exception as exc:
        log("ERROR", f"Unexpected error: {exc}")
        import traceback

        traceback.print_exc()
        return 1
    return report(outcome)
