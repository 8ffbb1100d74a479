from cmdkernel import demo_tools
from cmdkernel.definition_loader import load_definitions
from cmdkernel.kernel import Kernel
from cmdkernel.models import ExecutionContext
from cmdkernel.registry import CommandRegistry


def _run(line: str, *, is_root: bool = False, cluster: demo_tools.DemoCluster | None = None):
    kernel = Kernel(CommandRegistry(load_definitions()), demo_tools.build_demo_tools())
    return kernel.dispatch(line, ExecutionContext(is_root=is_root, state=cluster or demo_tools.DemoCluster()))


def test_demo_cluster_defaults() -> None:
    cluster = demo_tools.DemoCluster()
    assert len(cluster.gpus) == 8
    assert cluster.drained == {"dgx-03": "Xid 79 GPU fell off the bus"}
    assert cluster.jobs["1042"].state == "running"
    assert demo_tools.DemoCluster(jobs={"1": demo_tools.DemoJob("1", "x", "failed")}).jobs.keys() == {"1"}


def test_every_demo_tool_is_registered() -> None:
    names = [tool.name for tool in demo_tools.build_demo_tools()]
    assert names == ["nvidia-smi", "dcgmi", "sinfo", "ipmitool", "bcm", "hostname"]


def test_nvidia_smi_views() -> None:
    table = _run("nvidia-smi").output
    assert table.startswith("+-----+")
    assert "| 7   | NVIDIA H100 80GB HBM3 | 34C  | 71W / 700W    |" in table
    assert _run("nvidia-smi -L -i 0,1").output == "GPU 0: NVIDIA H100 80GB HBM3\nGPU 1: NVIDIA H100 80GB HBM3"
    assert "Current Power Limit               : 700.00 W" in _run("nvidia-smi -q -i 2").output
    assert _run("nvidia-smi -q -i x").exit_code == 2


def test_nvidia_smi_setters() -> None:
    cluster = demo_tools.DemoCluster()
    result = _run("nvidia-smi -pm 0 -i 3", is_root=True, cluster=cluster)
    assert result.output == "Disabled persistence mode for GPU 3."
    assert cluster.gpus[3].persistence_mode is False
    assert _run("nvidia-smi -pm 5", is_root=True).exit_code == 2
    assert _run("nvidia-smi -pl -5", is_root=True).exit_code == 2


def test_nvidia_smi_topology() -> None:
    matrix = _run("nvidia-smi topo -m").output.splitlines()
    assert matrix[0] == "\t" + "\t".join(f"GPU{i}" for i in range(8))
    assert matrix[1].startswith("GPU0\tX\tNV18")
    assert _run("nvidia-smi topo").exit_code == 1


def test_dcgmi_discovery() -> None:
    assert _run("dcgmi discovery -l").output.startswith("8 GPUs found.\n+--------+")


def test_sinfo_partitions_and_reasons() -> None:
    lines = _run("sinfo").output.splitlines()
    assert lines[0] == "PARTITION AVAIL  TIMELIMIT  NODES  STATE NODELIST"
    assert "gpu       up     infinite       3  idle  dgx-01,dgx-02,dgx-04" in lines
    assert "gpu       up     infinite       1  drain dgx-03" in lines
    only_debug = _run("sinfo -p debug -h").output.splitlines()
    assert only_debug == ["debug     up     infinite       1  idle  dgx-05"]
    assert _run("sinfo -R").output.splitlines()[0].startswith("REASON")


def test_ipmitool_paths() -> None:
    assert _run("ipmitool chassis power status", is_root=True).output == "Chassis Power is on"
    assert "PSU2" in _run("ipmitool sel elist", is_root=True).output
    assert _run("ipmitool mc", is_root=True).output.startswith("Device ID")
    assert _run("ipmitool", is_root=True).exit_code == 1


def test_bcm_jobs() -> None:
    assert "1041" not in _run("bcm job list -s running").output
    logs = _run("bcm job logs 1042 -n 2").output
    assert logs == "Checking node dgx-04 BMC firmware\nChecking node dgx-05 BMC firmware"
    assert len(_run("bcm job logs 1042").output.splitlines()) == 5
    assert _run("bcm job logs").exit_code == 1
    assert "job 9 not found" in _run("bcm job logs 9").output


def test_bcm_validate_pod() -> None:
    assert _run("bcm validate pod").exit_code == 1
    cluster = demo_tools.DemoCluster(drained={})
    assert _run("bcm validate pod --quick", cluster=cluster).output == "Validation passed"


def test_hostname() -> None:
    assert _run("hostname").output == "dgx-01"
    assert _run("hostname --fqdn").output == "dgx-01.cluster.local"
