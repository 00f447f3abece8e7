#!/usr/bin/env python3
"""Device inspector - bus identity, IRQ lines and steering files of a NIC"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from .device_state import DeviceState
from .errors import CommandFailed, DeviceNotFound


logger = logging.getLogger(__name__)

# Completion-queue interrupts of the mlx5 driver family
DEFAULT_IRQ_PATTERN = r"mlx5_comp[0-9]+@pci:{bus}"

IRQBALANCE_SERVICE = "irqbalance.service"

PROC_INTERRUPTS = "/proc/interrupts"


@dataclass(frozen=True)
class InterfaceIdentity:
    """Interface name and its PCI bus address"""
    name: str
    bus: str


@dataclass(frozen=True)
class IrqLine:
    """One interrupt line owned by the interface"""
    irq: int
    label: str

    @property
    def affinity_list_path(self) -> str:
        return f"/proc/irq/{self.irq}/smp_affinity_list"


def parse_ethtool_field(output: str, key: str) -> Optional[str]:
    """Extract a ``key: value`` field from ethtool output

    ``ethtool -l`` and ``ethtool -g`` print a "Pre-set maximums" block
    followed by a "Current hardware settings" block with the same keys.
    The value from the current block wins; without section headers the
    last occurrence is used.

    Args:
        output: ethtool stdout
        key: Field name without the colon (e.g. "Combined", "RX")

    Returns:
        Field value, or None if the key is absent
    """
    field_re = re.compile(rf"^\s*{re.escape(key)}:\s*(\S*)\s*$")
    section = None
    current = None
    last = None

    for line in output.splitlines():
        stripped = line.strip()
        if stripped.lower().startswith("current hardware settings"):
            section = "current"
            continue
        if stripped.lower().startswith("pre-set maximums"):
            section = "max"
            continue

        match = field_re.match(line)
        if not match:
            continue
        last = match.group(1)
        if section == "current":
            current = match.group(1)

    return current if current is not None else last


def _to_int(value: Optional[str]) -> Optional[int]:
    if value is None or not value.isdigit():
        return None
    return int(value)


class DeviceInspector:
    """Read-only view of one network interface"""

    def __init__(self, state: DeviceState, iface: str,
                 irq_pattern: str = DEFAULT_IRQ_PATTERN):
        """Initialize inspector

        Args:
            state: Device state resource
            iface: Interface name
            irq_pattern: Regex for the IRQ device label; ``{bus}`` is
                replaced by the escaped bus address
        """
        self.state = state
        self.iface = iface
        self.irq_pattern = irq_pattern
        self._identity = None

    def identity(self) -> InterfaceIdentity:
        """Resolve the interface's bus address (once per inspector)

        Raises:
            DeviceNotFound: interface missing or without a bus address
        """
        if self._identity is not None:
            return self._identity

        try:
            output = self.state.query(["ethtool", "-i", self.iface])
        except CommandFailed as e:
            raise DeviceNotFound(self.iface, e.stderr or str(e)) from e

        bus = None
        for line in output.splitlines():
            if line.startswith("bus-info:"):
                bus = line.split(":", 1)[1].strip()
                break

        if not bus or bus.upper() == "N/A":
            raise DeviceNotFound(self.iface, "no bus-info reported")

        self._identity = InterfaceIdentity(name=self.iface, bus=bus)
        logger.info(f"Interface {self.iface} is on bus {bus}")
        return self._identity

    def irqs(self) -> List[IrqLine]:
        """List the interface's IRQ lines in /proc/interrupts order"""
        bus = self.identity().bus
        pattern = re.compile(self.irq_pattern.replace("{bus}", re.escape(bus)))

        irq_lines = []
        for line in self.state.read_lines(PROC_INTERRUPTS):
            head, sep, rest = line.partition(":")
            irq = head.strip()
            if not sep or not irq.isdigit():
                continue
            match = pattern.search(rest)
            if match:
                irq_lines.append(IrqLine(irq=int(irq), label=match.group(0)))

        logger.debug(f"Matched {len(irq_lines)} IRQs for {self.iface}")
        return irq_lines

    def irq_affinity(self, irq: IrqLine) -> str:
        return self.state.read_text(irq.affinity_list_path)

    def rps_files(self) -> List[str]:
        return self.state.glob(f"/sys/class/net/{self.iface}/queues/rx-*/rps_cpus")

    def xps_files(self) -> List[str]:
        return self.state.glob(f"/sys/class/net/{self.iface}/queues/tx-*/xps_cpus")

    def read_mask(self, path: str) -> str:
        return self.state.read_text(path)

    def combined_queues(self) -> Optional[int]:
        """Current combined queue count, or None if the driver does not report it"""
        output = self._query_optional(["ethtool", "-l", self.iface])
        return _to_int(parse_ethtool_field(output, "Combined"))

    def ring_sizes(self) -> tuple:
        """Current (rx, tx) ring sizes; an entry is None if not reported"""
        output = self._query_optional(["ethtool", "-g", self.iface])
        rx = _to_int(parse_ethtool_field(output, "RX"))
        tx = _to_int(parse_ethtool_field(output, "TX"))
        return rx, tx

    def irqbalance_state(self) -> str:
        """Raw ``systemctl is-enabled`` answer ("enabled", "disabled", ...)"""
        try:
            output = self.state.query(["systemctl", "is-enabled", IRQBALANCE_SERVICE], check=False)
        except CommandFailed as e:
            logger.warning(f"Cannot query {IRQBALANCE_SERVICE}: {e}")
            return ""
        return output.strip()

    def _query_optional(self, cmd: List[str]) -> str:
        """Run a settings query whose failure only means "not reported"

        virtio and veth devices reject ``ethtool -l``/``-g`` with
        "Operation not supported"; the rest of the device state is still
        readable.
        """
        try:
            return self.state.query(cmd)
        except CommandFailed as e:
            logger.warning(f"{' '.join(cmd)} unavailable on {self.iface}: {e.stderr or e}")
            return ""
