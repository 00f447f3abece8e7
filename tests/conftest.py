"""
Pytest configuration and shared fixtures for nicbench tests.

The tuning engine is pointed at a fake /proc and /sys tree under tmp_path,
and system commands go to a FakeRunner that returns captured tool output.
"""

import os

import pytest

from nicbench.core.device_state import DeviceState
from nicbench.core.errors import CommandFailed


IFACE = "eth0"
BUS = "0000:3b:00.0"

ETHTOOL_I = f"""driver: mlx5_core
version: 5.15.0-91-generic
firmware-version: 16.35.2000 (MT_0000000080)
expansion-rom-version:
bus-info: {BUS}
supports-statistics: yes
supports-test: yes
"""

ETHTOOL_L = f"""Channel parameters for {IFACE}:
Pre-set maximums:
RX:             n/a
TX:             n/a
Other:          512
Combined:       63
Current hardware settings:
RX:             n/a
TX:             n/a
Other:          0
Combined:       32
"""

ETHTOOL_G = f"""Ring parameters for {IFACE}:
Pre-set maximums:
RX:             8192
RX Mini:        n/a
RX Jumbo:       n/a
TX:             8192
Current hardware settings:
RX:             1024
RX Mini:        n/a
RX Jumbo:       n/a
TX:             2048
"""

PROC_INTERRUPTS = f"""            CPU0       CPU1
   0:         35          0   IO-APIC    2-edge      timer
  98:          0          0  IR-PCI-MSI 1234-edge      mlx5_async0@pci:{BUS}
  99:       1000          0  IR-PCI-MSI 1235-edge      mlx5_comp0@pci:{BUS}
 100:          0       2000  IR-PCI-MSI 1236-edge      mlx5_comp1@pci:{BUS}
 101:          5          0  IR-PCI-MSI 1237-edge      mlx5_comp0@pci:0000:af:00.0
 NMI:          0          0   Non-maskable interrupts
"""

DEFAULT_AFFINITY = "0-63"
DEFAULT_RPS = "00000000,00000000,00000000,00000000"
DEFAULT_XPS = "00000000,00000000,00000000,00000001"

TUNED_IRQS = (99, 100)


class FakeRunner:
    """Records commands and answers them from a table of captured outputs

    A response may be a string (returned as stdout) or an exception
    (raised). Commands without a response return an empty string.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []

    def run(self, cmd, check=True):
        self.calls.append(list(cmd))
        response = self.responses.get(tuple(cmd), "")
        if isinstance(response, Exception):
            raise response
        return response

    def fail(self, cmd, returncode=1, stderr="operation not supported"):
        self.responses[tuple(cmd)] = CommandFailed(cmd, returncode, stderr)

    @property
    def mutating_calls(self):
        """Calls other than the read-only queries the inspector issues"""
        queries = (["ethtool", "-i"], ["ethtool", "-l"], ["ethtool", "-g"],
                   ["systemctl", "is-enabled"])
        return [c for c in self.calls if c[:2] not in queries]


def write_file(root, path, content):
    full = os.path.join(str(root), path.lstrip("/"))
    os.makedirs(os.path.dirname(full), exist_ok=True)
    with open(full, "w") as f:
        f.write(content)


def read_file(root, path):
    with open(os.path.join(str(root), path.lstrip("/"))) as f:
        return f.read()


def build_nic_tree(root, iface=IFACE, rx_queues=2, tx_queues=2):
    """Populate a fake /proc and /sys tree for one interface"""
    write_file(root, "/proc/interrupts", PROC_INTERRUPTS)
    for irq in (0, 98, 99, 100, 101):
        write_file(root, f"/proc/irq/{irq}/smp_affinity_list", f"{DEFAULT_AFFINITY}\n")
    for q in range(rx_queues):
        write_file(root, f"/sys/class/net/{iface}/queues/rx-{q}/rps_cpus", f"{DEFAULT_RPS}\n")
    for q in range(tx_queues):
        write_file(root, f"/sys/class/net/{iface}/queues/tx-{q}/xps_cpus", f"{DEFAULT_XPS}\n")
    return root


@pytest.fixture
def fake_runner():
    return FakeRunner({
        ("ethtool", "-i", IFACE): ETHTOOL_I,
        ("ethtool", "-l", IFACE): ETHTOOL_L,
        ("ethtool", "-g", IFACE): ETHTOOL_G,
        ("systemctl", "is-enabled", "irqbalance.service"): "enabled\n",
    })


@pytest.fixture
def nic_root(tmp_path):
    return build_nic_tree(tmp_path / "root")


@pytest.fixture
def state(nic_root, fake_runner):
    return DeviceState(root=str(nic_root), runner=fake_runner)


@pytest.fixture
def snapshot_path(tmp_path):
    return str(tmp_path / "state" / "nic_benchmark.defaults")
