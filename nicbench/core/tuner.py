#!/usr/bin/env python3
"""Tuning orchestrator - apply benchmark tuning to a NIC and revert it"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Tuple

from . import controls
from .affinity import CpuRange, affinity_list, hex_mask_for_file, mask_to_cpus
from .errors import CommandFailed, StepFailed
from .inspector import DeviceInspector
from .report import TuningReport
from .snapshot import SnapshotStore


logger = logging.getLogger(__name__)


@dataclass
class TuningSettings:
    """Target configuration for ``apply``"""
    cpu_range: CpuRange
    combined_queues: int
    ring_size: int
    disable_cstates: bool = False
    stop_irqbalance: bool = False
    revert_tx_ring_from: str = "rx"


class TuningOrchestrator:
    """Runs the apply and revert workflows against one interface

    Apply steps are independent: each one runs even if an earlier one
    failed, and outcomes are collected into a TuningReport. Governor and
    idle-state changes are not part of the snapshot and are not reverted.
    """

    def __init__(self, inspector: DeviceInspector, store: SnapshotStore,
                 settings: TuningSettings):
        self.inspector = inspector
        self.store = store
        self.state = inspector.state
        self.settings = settings

    def apply_steps(self) -> List[Tuple[str, Callable[[], None]]]:
        """Ordered (name, callable) list of apply steps"""
        steps = [
            ("save_snapshot", self.save_snapshot),
            ("set_governor", self.set_governor),
        ]
        if self.settings.disable_cstates:
            steps.append(("disable_cstates", self.disable_cstates))
        if self.settings.stop_irqbalance:
            steps.append(("stop_irqbalance", self.stop_irqbalance))
        steps.extend([
            ("set_combined_queues", self.set_combined_queues),
            ("set_ring_sizes", self.set_ring_sizes),
            ("pin_irqs", self.pin_irqs),
            ("configure_rps", self.configure_rps),
            ("configure_xps", self.configure_xps),
        ])
        return steps

    def apply(self) -> TuningReport:
        """Save the current state, then apply every tuning step

        Raises:
            DeviceNotFound: the interface has no bus address
        """
        # Resolved up front: nothing else can proceed without it
        self.inspector.identity()

        report = TuningReport(action="apply")
        for name, step in self.apply_steps():
            try:
                step()
                report.record(name)
            except (CommandFailed, OSError, ValueError) as e:
                report.record(name, StepFailed(name, e))

        logger.info(report.summary())
        return report

    def revert(self) -> TuningReport:
        """Restore the device from the saved snapshot

        Raises:
            SnapshotMissing: no snapshot has been saved
        """
        snapshot = self.store.load()
        logger.info(f"Reverting settings from {self.store.path}...")

        rx_size = snapshot.rx_ring
        if self.settings.revert_tx_ring_from == "tx":
            tx_size = snapshot.tx_ring
        else:
            tx_size = snapshot.rx_ring
            if snapshot.tx_ring is not None and snapshot.tx_ring != snapshot.rx_ring:
                logger.warning(f"Restoring TX ring from saved RX size {snapshot.rx_ring} "
                               f"(saved TX size was {snapshot.tx_ring}); "
                               f"set REVERT_TX_RING_FROM=tx to use it")

        report = self.store.apply(snapshot, rx_size=rx_size, tx_size=tx_size)
        logger.info(report.summary())
        return report

    def save_snapshot(self):
        self.store.save()

    def set_governor(self):
        controls.set_governor_performance(self.state)

    def disable_cstates(self):
        controls.disable_cstates(self.state)

    def stop_irqbalance(self):
        controls.set_irqbalance(self.state, enabled=False)

    def set_combined_queues(self):
        controls.set_combined_queues(self.state, self.inspector.iface,
                                     self.settings.combined_queues)

    def set_ring_sizes(self):
        size = self.settings.ring_size
        controls.set_ring_sizes(self.state, self.inspector.iface, size, size)

    def pin_irqs(self):
        """Write the CPU list to every matched IRQ's affinity list"""
        identity = self.inspector.identity()
        cpus = affinity_list(self.settings.cpu_range)
        logger.info(f"Pinning IRQs for {identity.name} (bus {identity.bus}) to CPUs {cpus}...")

        irqs = self.inspector.irqs()
        if not irqs:
            logger.warning(f"No IRQs matched pattern {self.inspector.irq_pattern} on bus {identity.bus}")

        failures = self._write_each([(irq.affinity_list_path, lambda _: cpus) for irq in irqs])
        if failures:
            raise OSError(f"{failures}/{len(irqs)} IRQ affinity writes failed")

    def configure_rps(self):
        logger.info(f"Configuring RPS for {self.inspector.iface}...")
        self._configure_steering(self.inspector.rps_files())

    def configure_xps(self):
        logger.info(f"Configuring XPS for {self.inspector.iface}...")
        self._configure_steering(self.inspector.xps_files())

    def _configure_steering(self, paths: List[str]):
        cpu_range = self.settings.cpu_range

        def mask_for(path: str) -> str:
            mask = hex_mask_for_file(self.state, path, cpu_range)
            logger.debug(f"{path}: {mask} (CPUs {mask_to_cpus(mask)})")
            return mask

        failures = self._write_each([(path, mask_for) for path in paths])
        if failures:
            raise OSError(f"{failures}/{len(paths)} steering mask writes failed")

    def _write_each(self, entries: List[Tuple[str, Callable[[str], str]]]) -> int:
        """Write every entry, logging per-file errors; returns the failure count"""
        failures = 0
        for path, value_for in entries:
            try:
                self.state.write_text(path, value_for(path))
            except OSError as e:
                failures += 1
                logger.error(f"Failed to write {path}: {e}")
        return failures
