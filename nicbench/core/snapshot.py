#!/usr/bin/env python3
"""State snapshot store - save, load and restore NIC configuration"""

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional

from . import controls
from .errors import CommandFailed, RestoreEntryFailed, SnapshotFormatError, SnapshotMissing
from .inspector import DeviceInspector
from .report import TuningReport


logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_PATH = "/var/tmp/nic_benchmark.defaults"

SCALAR_KEYS = ("IFACE", "IRQBALANCE_ENABLED", "COMBINED_QUEUES", "RX_RING_SIZE", "TX_RING_SIZE")
SECTION_KEYS = ("IRQ_AFFINITY", "RPS_MASKS", "XPS_MASKS")


@dataclass(frozen=True)
class DeviceSnapshot:
    """Device configuration captured before tuning"""
    iface: str = ""
    irqbalance_state: str = ""
    combined_queues: Optional[int] = None
    rx_ring: Optional[int] = None
    tx_ring: Optional[int] = None
    irq_affinity: Dict[int, str] = field(default_factory=dict)
    rps_masks: Dict[str, str] = field(default_factory=dict)
    xps_masks: Dict[str, str] = field(default_factory=dict)

    @property
    def irqbalance_enabled(self) -> bool:
        return self.irqbalance_state == "enabled"


def _fmt(value: Optional[int]) -> str:
    return "" if value is None else str(value)


def serialize_snapshot(snapshot: DeviceSnapshot) -> str:
    """Render a snapshot in the line-oriented defaults file format"""
    lines = [
        f"IFACE={snapshot.iface}",
        f"IRQBALANCE_ENABLED={snapshot.irqbalance_state}",
        f"COMBINED_QUEUES={_fmt(snapshot.combined_queues)}",
        f"RX_RING_SIZE={_fmt(snapshot.rx_ring)}",
        f"TX_RING_SIZE={_fmt(snapshot.tx_ring)}",
        "IRQ_AFFINITY=",
    ]
    lines.extend(f"  {irq}:{cpus}" for irq, cpus in snapshot.irq_affinity.items())
    lines.append("RPS_MASKS=")
    lines.extend(f"  {path}: {mask}" for path, mask in snapshot.rps_masks.items())
    lines.append("XPS_MASKS=")
    lines.extend(f"  {path}: {mask}" for path, mask in snapshot.xps_masks.items())
    return "\n".join(lines) + "\n"


def parse_snapshot(text: str, source: str = "<snapshot>") -> DeviceSnapshot:
    """Parse the defaults file format back into a DeviceSnapshot

    Args:
        text: File content
        source: Name used in error messages

    Returns:
        DeviceSnapshot

    Raises:
        SnapshotFormatError: a line does not fit the format
    """
    scalars = {}
    sections = {key: {} for key in SECTION_KEYS}
    section = None

    for line_no, line in enumerate(text.splitlines(), start=1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue

        if line[0].isspace():
            if section is None:
                raise SnapshotFormatError(source, line_no, line)
            body = line.strip()
            if section == "IRQ_AFFINITY":
                irq, sep, cpus = body.partition(":")
                if not sep or not irq.strip().isdigit():
                    raise SnapshotFormatError(source, line_no, line)
                sections[section][int(irq)] = cpus.strip()
            else:
                path, sep, mask = body.rpartition(":")
                if not sep or not path:
                    raise SnapshotFormatError(source, line_no, line)
                sections[section][path.strip()] = mask.strip()
            continue

        key, sep, value = line.partition("=")
        if not sep:
            raise SnapshotFormatError(source, line_no, line)
        key = key.strip()
        if key in SECTION_KEYS:
            section = key
        elif key in SCALAR_KEYS:
            section = None
            scalars[key] = (value.strip(), line_no)
        else:
            logger.warning(f"{source}:{line_no}: ignoring unknown key {key}")
            section = None

    def scalar(key: str) -> str:
        return scalars.get(key, ("", 0))[0]

    def as_int(key: str) -> Optional[int]:
        value, line_no = scalars.get(key, ("", 0))
        if not value:
            return None
        if not value.isdigit():
            raise SnapshotFormatError(source, line_no, f"{key}={value}")
        return int(value)

    return DeviceSnapshot(
        iface=scalar("IFACE"),
        irqbalance_state=scalar("IRQBALANCE_ENABLED"),
        combined_queues=as_int("COMBINED_QUEUES"),
        rx_ring=as_int("RX_RING_SIZE"),
        tx_ring=as_int("TX_RING_SIZE"),
        irq_affinity=sections["IRQ_AFFINITY"],
        rps_masks=sections["RPS_MASKS"],
        xps_masks=sections["XPS_MASKS"],
    )


class SnapshotStore:
    """Persists at most one DeviceSnapshot and restores it"""

    def __init__(self, inspector: DeviceInspector, path: str = DEFAULT_SNAPSHOT_PATH):
        """Initialize snapshot store

        Args:
            inspector: Inspector of the tuned interface
            path: Defaults file location
        """
        self.inspector = inspector
        self.state = inspector.state
        self.path = path

    def capture(self) -> DeviceSnapshot:
        """Read the current device configuration"""
        inspector = self.inspector
        rx_ring, tx_ring = inspector.ring_sizes()

        irq_affinity = {}
        for irq in inspector.irqs():
            irq_affinity[irq.irq] = inspector.irq_affinity(irq)

        return DeviceSnapshot(
            iface=inspector.iface,
            irqbalance_state=inspector.irqbalance_state(),
            combined_queues=inspector.combined_queues(),
            rx_ring=rx_ring,
            tx_ring=tx_ring,
            irq_affinity=irq_affinity,
            rps_masks={path: inspector.read_mask(path) for path in inspector.rps_files()},
            xps_masks={path: inspector.read_mask(path) for path in inspector.xps_files()},
        )

    def save(self) -> DeviceSnapshot:
        """Capture the device and overwrite the defaults file"""
        logger.info(f"Saving current settings to {self.path}...")
        snapshot = self.capture()
        content = serialize_snapshot(snapshot)

        if self.state.dry_run:
            logger.info(f"[dry-run] would write {len(content.splitlines())} lines to {self.path}")
            return snapshot

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(f"# saved {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
                f.write(content)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"Defaults saved: {len(snapshot.irq_affinity)} IRQs, "
                    f"{len(snapshot.rps_masks)} RPS and {len(snapshot.xps_masks)} XPS files")
        return snapshot

    def load(self) -> DeviceSnapshot:
        """Read the defaults file

        Raises:
            SnapshotMissing: no defaults file at the configured path
        """
        if not os.path.isfile(self.path):
            raise SnapshotMissing(self.path)

        with open(self.path, "r", encoding="utf-8") as f:
            snapshot = parse_snapshot(f.read(), source=self.path)

        if snapshot.iface and snapshot.iface != self.inspector.iface:
            logger.warning(f"Snapshot was taken on {snapshot.iface}, "
                           f"restoring onto {self.inspector.iface}")
        return snapshot

    def apply(self, snapshot: DeviceSnapshot, rx_size: Optional[int] = None,
              tx_size: Optional[int] = None) -> TuningReport:
        """Restore every field of a snapshot, one entry at a time

        Ring sizes default to the snapshot's saved values; callers choose
        explicitly which saved value feeds each direction.

        Args:
            snapshot: Snapshot to restore
            rx_size: RX ring size to restore
            tx_size: TX ring size to restore

        Returns:
            Report with one result per restored entry
        """
        report = TuningReport(action="revert")
        iface = self.inspector.iface

        try:
            controls.set_irqbalance(self.state, snapshot.irqbalance_enabled)
            report.record("irqbalance")
        except (CommandFailed, OSError) as e:
            report.record("irqbalance", RestoreEntryFailed("irqbalance", e))

        if snapshot.combined_queues is None:
            logger.warning("No saved combined queue count, leaving queues unchanged")
        else:
            try:
                controls.set_combined_queues(self.state, iface, snapshot.combined_queues)
                report.record("combined_queues")
            except (CommandFailed, OSError) as e:
                report.record("combined_queues", RestoreEntryFailed("combined_queues", e))

        rx_size = snapshot.rx_ring if rx_size is None else rx_size
        tx_size = snapshot.tx_ring if tx_size is None else tx_size
        if rx_size is None or tx_size is None:
            logger.warning("No saved ring sizes, leaving rings unchanged")
        else:
            try:
                controls.set_ring_sizes(self.state, iface, rx_size, tx_size)
                report.record("ring_sizes")
            except (CommandFailed, OSError) as e:
                report.record("ring_sizes", RestoreEntryFailed("ring_sizes", e))

        for irq, cpus in snapshot.irq_affinity.items():
            self._restore_entry(report, f"/proc/irq/{irq}/smp_affinity_list", cpus)
        for path, mask in snapshot.rps_masks.items():
            self._restore_entry(report, path, mask)
        for path, mask in snapshot.xps_masks.items():
            self._restore_entry(report, path, mask)

        return report

    def _restore_entry(self, report: TuningReport, path: str, value: str):
        try:
            self.state.write_text(path, value)
            report.record(path)
        except OSError as e:
            report.record(path, RestoreEntryFailed(path, e))

