#!/usr/bin/env python3
"""
lxc-cuda - Command Line Interface

Host-side tooling for NVIDIA GPU passthrough into Proxmox containers.
"""

import argparse
import logging
import sys
from pathlib import Path

from common.decorators import require_root
from common.exceptions import InvalidConfigError, LxcCudaError
from common.logging_config import setup_logging

from . import cuda
from .gpu_query import NvidiaSmi
from .devices import HostDeviceScanner
from .pct import PctClient
from .provisioner import GpuPassthroughProvisioner
from .settings import Settings, load_settings

logger = logging.getLogger(__name__)


def _settings_from_args(args) -> Settings:
    passthrough = {}
    if getattr(args, "gpu", None) is not None:
        passthrough["gpu_selection"] = args.gpu
    if getattr(args, "style", None):
        passthrough["directive_style"] = args.style
    if getattr(args, "no_restart", False):
        passthrough["restart_container"] = False

    overrides = {}
    if passthrough:
        overrides["passthrough"] = passthrough
    return load_settings(**overrides)


def cmd_scan(args, settings: Settings) -> int:
    """List host GPUs and auxiliary device nodes."""
    nvidia = NvidiaSmi(settings.host.nvidia_smi, timeout=settings.host.command_timeout)
    nvidia.check_host()

    if getattr(args, "json", False):
        print(nvidia.to_json())
        return 0

    gpus = nvidia.list_gpus()

    print("=== lxc-cuda Host Scan ===\n")
    print(f"GPUs: {len(gpus)} detected")
    for gpu in gpus:
        print(f"  • [{gpu.index}] {gpu.name} ({gpu.memory_total or 'unknown memory'})")
        print(f"    Device node: {gpu.device_path}")
    print()

    scanner = HostDeviceScanner(settings.host.device_root)
    print("Auxiliary devices:")
    for device, present in scanner.auxiliary_status():
        status = "✅" if present else "❌"
        print(f"  {status} {device.path} ({device.label})")

    capabilities = scanner.capability_entries()
    if capabilities:
        print(f"Capability devices: {', '.join(capabilities)}")
    return 0


def cmd_plan(args, settings: Settings) -> int:
    """Print the passthrough block without touching any container."""
    provisioner = GpuPassthroughProvisioner(settings)
    plan = provisioner.build_plan()
    for warning in provisioner.plan_warnings(plan):
        logger.warning(warning)
    print(provisioner.render(plan), end="")
    return 0


@require_root
def _provision_live(provisioner: GpuPassthroughProvisioner, ctid: str):
    return provisioner.provision(ctid)


def cmd_apply(args, settings: Settings) -> int:
    """Append passthrough configuration to a container."""
    if not settings.passthrough.enabled:
        print("GPU passthrough is disabled in configuration, nothing to do")
        return 0

    provisioner = GpuPassthroughProvisioner(settings)

    ctid = args.ctid
    if ctid is None:
        ctid = provisioner.pct.latest_ctid()
        if ctid is None:
            print("❌ No container id given and no containers found", file=sys.stderr)
            return 1
        logger.info(f"No container id given, using most recent container {ctid}")

    if args.dry_run:
        print("=== DRY RUN - No changes will be made ===\n")
        result = provisioner.provision(ctid, dry_run=True)
        print(f"Would append to {result.config_path}:")
        print(result.rendered, end="")
        return 0

    result = _provision_live(provisioner, ctid)

    if result.errors:
        print("❌ Errors:", file=sys.stderr)
        for error in result.errors:
            print(f"   - {error}", file=sys.stderr)

    if result.is_valid:
        print(f"✅ GPU passthrough configured for CT {result.ctid} "
              f"({result.plan.device_count} devices)")
    else:
        print(f"⚠️  GPU passthrough written for CT {result.ctid} "
              f"({result.plan.device_count} devices), but the container needs attention")
    print(f"   Backup: {result.backup_path}")
    print("\nQuick Commands:")
    print(f"  Enter container:  pct enter {result.ctid}")
    print(f"  Check GPU:        pct exec {result.ctid} -- nvidia-smi")
    return 0 if result.is_valid else 1


def cmd_cuda(args, settings: Settings) -> int:
    """Show the CUDA package and repository for a container OS."""
    version = args.cuda_version or settings.cuda.version
    if args.os_release:
        try:
            text = Path(args.os_release).read_text()
        except OSError as e:
            raise InvalidConfigError("os_release", args.os_release, e.strerror or str(e)) from e
        os_id, os_version = cuda.parse_os_release(text)
    else:
        os_id, os_version = args.os, args.os_version

    repository = cuda.repository_for(os_id, os_version)
    print(f"CUDA version:  {version}")
    print(f"Package:       {cuda.toolkit_package(version)}")
    print(f"Repository:    {repository} ({os_id} {os_version})")
    print(f"Keyring:       {cuda.keyring_url(repository)}")
    return 0


def cmd_check(args, settings: Settings) -> int:
    """Quick host compatibility check."""
    nvidia = NvidiaSmi(settings.host.nvidia_smi, timeout=settings.host.command_timeout)
    nvidia.check_host()
    count = nvidia.gpu_count()
    if count == 0:
        print("⚠️  NVIDIA driver loaded but no GPUs reported")
        return 1
    print(f"✅ NVIDIA driver detected on host ({count} GPU(s))")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lxc-cuda",
        description="NVIDIA GPU passthrough for Proxmox LXC containers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lxc-cuda scan                     # List host GPUs and device nodes
  lxc-cuda plan --gpu 1             # Show config for GPU 1 only
  lxc-cuda apply 105 --dry-run      # Preview changes for CT 105
  lxc-cuda apply 105                # Configure CT 105 and restart it
  lxc-cuda cuda --os ubuntu --os-version 22.04
        """
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--json-logs", action="store_true", help="JSON format for the log file")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    scan_parser = subparsers.add_parser("scan", help="Scan host GPUs")
    scan_parser.add_argument("--json", action="store_true", help="Print the GPU list as JSON")
    scan_parser.set_defaults(func=cmd_scan)

    def add_selection_args(sub):
        sub.add_argument("-g", "--gpu", default=None,
                         help="'all' or a GPU index (default from config)")
        sub.add_argument("-s", "--style", choices=["dev", "mount-entry"], default=None,
                         help="Directive style (default from config)")

    plan_parser = subparsers.add_parser("plan", help="Print passthrough configuration")
    add_selection_args(plan_parser)
    plan_parser.set_defaults(func=cmd_plan)

    apply_parser = subparsers.add_parser("apply", help="Configure a container")
    apply_parser.add_argument("ctid", nargs="?", default=None,
                              help="Container id (default: most recent container)")
    add_selection_args(apply_parser)
    apply_parser.add_argument("-n", "--dry-run", action="store_true",
                              help="Show what would be done")
    apply_parser.add_argument("--no-restart", action="store_true",
                              help="Do not restart the container")
    apply_parser.set_defaults(func=cmd_apply)

    cuda_parser = subparsers.add_parser("cuda", help="Show CUDA package and repository")
    cuda_parser.add_argument("--cuda-version", default=None, help="e.g. 12.8")
    cuda_parser.add_argument("--os", default="debian", help="Container OS id")
    cuda_parser.add_argument("--os-version", default="12", help="Container OS version")
    cuda_parser.add_argument("--os-release", default=None,
                             help="Read OS id/version from an os-release file")
    cuda_parser.set_defaults(func=cmd_cuda)

    check_parser = subparsers.add_parser("check", help="Quick host check")
    check_parser.set_defaults(func=cmd_check)

    return parser


def main(argv=None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = _settings_from_args(args)
        setup_logging(
            level=logging.DEBUG if args.verbose else settings.logging.level,
            log_file=args.log_file or settings.logging.log_file,
            json_logs=args.json_logs or settings.logging.json_logs,
        )

        if args.command is None:
            # Default to scan
            return cmd_scan(args, settings)
        return args.func(args, settings)
    except LxcCudaError as e:
        logger.debug(f"Command failed: {e.to_dict()}", exc_info=True)
        print(f"❌ {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
