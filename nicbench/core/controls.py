#!/usr/bin/env python3
"""One-shot system controls used by apply and revert"""

import logging

from .device_state import DeviceState
from .inspector import IRQBALANCE_SERVICE


logger = logging.getLogger(__name__)


def set_governor_performance(state: DeviceState):
    """Switch every CPU to the performance frequency governor"""
    logger.info("Setting CPU scaling governor to performance...")
    state.execute(["cpupower", "frequency-set", "-r", "-g", "performance"])


def disable_cstates(state: DeviceState, depth: int = 2):
    """Disable CPU idle states from ``depth`` downwards"""
    logger.info(f"Disabling CPU idle state {depth}...")
    state.execute(["cpupower", "idle-set", "-d", str(depth)])


def set_irqbalance(state: DeviceState, enabled: bool):
    """Enable and start, or stop and disable, the irqbalance service"""
    if enabled:
        logger.info("Enabling irqbalance...")
        state.execute(["systemctl", "enable", IRQBALANCE_SERVICE])
        state.execute(["systemctl", "start", IRQBALANCE_SERVICE])
    else:
        logger.info("Stopping irqbalance...")
        state.execute(["systemctl", "stop", IRQBALANCE_SERVICE])
        state.execute(["systemctl", "disable", IRQBALANCE_SERVICE])


def set_combined_queues(state: DeviceState, iface: str, count: int):
    logger.info(f"Setting {iface} combined queues to {count}...")
    state.execute(["ethtool", "-L", iface, "combined", str(count)])


def set_ring_sizes(state: DeviceState, iface: str, rx_size: int, tx_size: int):
    logger.info(f"Setting {iface} RX/TX ring buffer sizes to {rx_size}/{tx_size}...")
    state.execute(["ethtool", "-G", iface, "rx", str(rx_size), "tx", str(tx_size)])
