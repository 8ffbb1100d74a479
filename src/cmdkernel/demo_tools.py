"""Thin demonstration handlers that drive the interactive shell.

They render small fixed views over a :class:`DemoCluster` carried in
``ExecutionContext.state``. All parsing, validation and privilege checks
happen in the kernel before these run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from . import results
from .kernel import Tool
from .models import CommandMetadata, CommandResult, ExecutionContext, FlagDefinition, ParsedCommand


@dataclass
class DemoGpu:
    index: int
    name: str = "NVIDIA H100 80GB HBM3"
    temperature: int = 34
    power_draw: int = 71
    power_limit: int = 700
    persistence_mode: bool = True


@dataclass
class DemoJob:
    job_id: str
    name: str
    state: str
    log: tuple[str, ...] = ()


@dataclass
class DemoCluster:
    """Mutable simulated state shared by the demo handlers."""

    hostname: str = "dgx-01"
    gpus: list[DemoGpu] = field(default_factory=lambda: [DemoGpu(index=i) for i in range(8)])
    partitions: dict[str, list[str]] = field(
        default_factory=lambda: {"gpu": ["dgx-01", "dgx-02", "dgx-03", "dgx-04"], "debug": ["dgx-05"]}
    )
    drained: dict[str, str] = field(default_factory=lambda: {"dgx-03": "Xid 79 GPU fell off the bus"})
    jobs: dict[str, DemoJob] = field(default_factory=dict)
    active_head: str = "head-01"
    passive_head: str = "head-02"

    def __post_init__(self) -> None:
        if not self.jobs:
            self.jobs = {
                "1041": DemoJob("1041", "image-update", "completed", ("Syncing image default-image", "Done")),
                "1042": DemoJob(
                    "1042",
                    "firmware-check",
                    "running",
                    tuple(f"Checking node dgx-0{n} BMC firmware" for n in range(1, 6)),
                ),
            }


def _cluster(context: ExecutionContext) -> DemoCluster:
    if isinstance(context.state, DemoCluster):
        return context.state
    return DemoCluster()


def _target_gpus(parsed: ParsedCommand, cluster: DemoCluster) -> list[DemoGpu] | CommandResult:
    raw = results.get_flag_string(parsed, "id")
    if not raw:
        return cluster.gpus
    selected: list[DemoGpu] = []
    for part in raw.split(","):
        if not part.isdigit() or int(part) >= len(cluster.gpus):
            return results.device_not_found_error("nvidia-smi", part)
        selected.append(cluster.gpus[int(part)])
    return selected


def nvidia_smi(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    """Summary table, ``-L``, ``-q`` and the power-limit / persistence setters."""
    cluster = _cluster(context)
    gpus = _target_gpus(parsed, cluster)
    if isinstance(gpus, CommandResult):
        return gpus

    if parsed.has_flag("power-limit"):
        watts = results.validate_positive_int(results.get_flag_string(parsed, "power-limit"), "Power limit")
        if not watts.valid:
            return results.error(f"nvidia-smi: {watts.error}", results.EXIT_INVALID_USAGE)
        lines = []
        for gpu in gpus:
            gpu.power_limit = watts.value or gpu.power_limit
            lines.append(f"Power limit for GPU {gpu.index:08X}:00:00.0 was set to {gpu.power_limit}.00 W.")
        return results.success("\n".join(lines) + "\nAll done.")

    if parsed.has_flag("persistence-mode"):
        mode = results.validate_in_set(results.get_flag_string(parsed, "persistence-mode"), ["0", "1"], "mode")
        if not mode.valid:
            return results.error(f"nvidia-smi: {mode.error}", results.EXIT_INVALID_USAGE)
        enabled = results.get_flag_bool(parsed, "persistence-mode")
        for gpu in gpus:
            gpu.persistence_mode = enabled
        state = "Enabled" if enabled else "Disabled"
        return results.success("\n".join(f"{state} persistence mode for GPU {gpu.index}." for gpu in gpus))

    if parsed.has_flag("list-gpus"):
        return results.success("\n".join(f"GPU {gpu.index}: {gpu.name}" for gpu in gpus))

    if parsed.has_flag("query"):
        blocks = []
        for gpu in gpus:
            blocks.append(
                f"GPU {gpu.index}\n"
                f"    Product Name                      : {gpu.name}\n"
                f"    Persistence Mode                  : {'Enabled' if gpu.persistence_mode else 'Disabled'}\n"
                f"    GPU Current Temp                  : {gpu.temperature} C\n"
                f"    Power Draw                        : {gpu.power_draw}.00 W\n"
                f"    Current Power Limit               : {gpu.power_limit}.00 W"
            )
        return results.success("\n\n".join(blocks))

    rows = [
        [str(gpu.index), gpu.name, f"{gpu.temperature}C", f"{gpu.power_draw}W / {gpu.power_limit}W"]
        for gpu in gpus
    ]
    return results.success(results.format_table(["GPU", "Name", "Temp", "Pwr:Usage/Cap"], rows))


def nvidia_smi_topo(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    if not parsed.has_flag("matrix"):
        return results.missing_argument_error("nvidia-smi topo", "-m")
    labels = [f"GPU{gpu.index}" for gpu in cluster.gpus]
    header = "\t" + "\t".join(labels)
    rows = [
        label + "\t" + "\t".join("X" if i == j else "NV18" for j in range(len(labels)))
        for i, label in enumerate(labels)
    ]
    return results.success("\n".join([header, *rows]))


def dcgmi_discovery(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    rows = [[str(gpu.index), gpu.name] for gpu in cluster.gpus]
    table = results.format_table(["GPU ID", "Device Information"], rows)
    return results.success(f"{len(cluster.gpus)} GPUs found.\n{table}")


async def dcgmi_diag(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    """Deferred handler: diagnostics complete after a simulated wait."""
    missing = results.require_flags(parsed, ("r", "run"))
    if missing is not None:
        return missing
    level = results.get_flag_string(parsed, "run")
    check = results.validate_in_set(level, ["1", "2", "3"], "diagnostic level")
    if not check.valid:
        return results.error(f"dcgmi diag: {check.error}", results.EXIT_INVALID_USAGE)
    await asyncio.sleep(0)
    tests = ["Deployment", "PCIe", "GPU Memory"] + (["Diagnostic", "Targeted Stress"] if level != "1" else [])
    rows = [[test, "Pass"] for test in tests]
    return results.success(results.format_table(["Diagnostic", "Result"], rows))


def sinfo(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    if parsed.has_flag("list-reasons"):
        lines = [] if parsed.has_flag("noheader") else [f"{'REASON':<40} NODELIST"]
        lines.extend(f"{reason:<40} {node}" for node, reason in cluster.drained.items())
        return results.success("\n".join(lines))

    wanted = results.get_flag_string(parsed, "partition")
    lines = [] if parsed.has_flag("noheader") else ["PARTITION AVAIL  TIMELIMIT  NODES  STATE NODELIST"]
    for partition, nodes in cluster.partitions.items():
        if wanted and partition != wanted:
            continue
        idle = [node for node in nodes if node not in cluster.drained]
        drained = [node for node in nodes if node in cluster.drained]
        for state, members in (("idle", idle), ("drain", drained)):
            if members:
                lines.append(f"{partition:<9} {'up':<5}  {'infinite':<9}  {len(members):>5}  {state:<5} {','.join(members)}")
    return results.success("\n".join(lines))


def ipmitool(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    path = " ".join(parsed.subcommands)
    if path == "chassis power" or path == "chassis status":
        return results.success("Chassis Power is on")
    if path.startswith("sensor"):
        rows = [["Inlet Temp", "24.000", "degrees C", "ok"], ["PSU1 Power", "1450.000", "Watts", "ok"]]
        return results.success(results.format_table(["Sensor", "Reading", "Units", "Status"], rows))
    if path.startswith("sel"):
        return results.success("   1 | 03/02/2026 | 10:15:04 | Power Supply PSU2 | Failure detected | Asserted")
    if path == "mc":
        return results.success("Device ID                 : 32\nFirmware Revision         : 1.14")
    return results.missing_argument_error("ipmitool", "command")


def bcm_status(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    nodes = sorted({node for members in cluster.partitions.values() for node in members})
    up = len([node for node in nodes if node not in cluster.drained])
    return results.success(f"Cluster: superpod\nHead node: {cluster.active_head} (active)\nNodes: {up}/{len(nodes)} UP")


def bcm_job_list(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    state = results.get_flag_string(parsed, "state")
    jobs = [job for job in cluster.jobs.values() if not state or job.state == state]
    rows = [[job.job_id, job.name, job.state] for job in jobs]
    return results.success(results.format_table(["ID", "Name", "State"], rows))


def bcm_job_logs(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    if not parsed.positional_args:
        return results.missing_argument_error("bcm job logs", "job-id")
    job = cluster.jobs.get(parsed.positional_args[0])
    if job is None:
        return results.error(f"bcm: job {parsed.positional_args[0]} not found")
    count = int(results.get_flag_number(parsed, "lines", 20))
    return results.success("\n".join(job.log[-count:] if count > 0 else ()))


def bcm_ha_status(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    return results.success(f"{cluster.active_head}  active\n{cluster.passive_head}  passive")


def bcm_ha_failover(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    cluster.active_head, cluster.passive_head = cluster.passive_head, cluster.active_head
    return results.success(f"Failover complete: {cluster.active_head} is now active")


def bcm_validate_pod(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    if cluster.drained:
        failed = ", ".join(sorted(cluster.drained))
        return results.error(f"Validation failed: drained nodes {failed}")
    return results.success("Validation passed")


def hostname(parsed: ParsedCommand, context: ExecutionContext) -> CommandResult:
    cluster = _cluster(context)
    if results.get_flag_bool(parsed, ("f", "fqdn")):
        return results.success(f"{cluster.hostname}.cluster.local")
    return results.success(cluster.hostname)


def build_demo_tools() -> list[Tool]:
    """Tools served by the interactive shell."""
    smi = Tool("nvidia-smi", nvidia_smi, version="550.54.15", description="GPU monitoring and management")
    smi.command("topo", nvidia_smi_topo, CommandMetadata(name="topo", description="GPU topology matrix"))

    dcgmi = Tool("dcgmi", version="3.3.5", description="Data Center GPU Manager")
    dcgmi.command("discovery", dcgmi_discovery, CommandMetadata(name="discovery", description="Discover GPUs"))
    dcgmi.command(
        "diag",
        dcgmi_diag,
        CommandMetadata(
            name="diag",
            description="Run diagnostics",
            usage="dcgmi diag -r LEVEL",
            flags=(FlagDefinition(long="run", short="r", takes_value=True, description="Diagnostic level"),),
            examples=("dcgmi diag -r 1",),
        ),
    )

    bcm = Tool("bcm", version="10.24.03", description="Base Command Manager")
    bcm.command("status", bcm_status, CommandMetadata(name="status", description="Cluster status"))
    bcm.command("job list", bcm_job_list, CommandMetadata(name="job list", description="List jobs"))
    bcm.command("job logs", bcm_job_logs, CommandMetadata(name="job logs", description="Show job log"))
    bcm.command("ha status", bcm_ha_status, CommandMetadata(name="ha status", description="Failover status"))
    bcm.command("ha failover", bcm_ha_failover, CommandMetadata(name="ha failover", description="Fail over"))
    bcm.command("validate pod", bcm_validate_pod, CommandMetadata(name="validate pod", description="Validate the pod"))

    return [
        smi,
        dcgmi,
        Tool("sinfo", sinfo, version="23.11.4", description="Slurm partition and node state"),
        Tool("ipmitool", ipmitool, version="1.8.19", description="BMC access over IPMI"),
        bcm,
        Tool(
            "hostname",
            hostname,
            description="Show the system host name",
            flags=("s", "short", "f", "fqdn", "help", "version"),
        ),
    ]
