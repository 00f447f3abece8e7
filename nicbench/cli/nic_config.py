#!/usr/bin/env python3
"""NIC configuration for network benchmarking - apply tuning or revert it

Apply settings:   nic-config apply
Revert settings:  nic-config revert

All tunables come from the environment (IFACE, CPU_LIST, NUM_CORES,
COMBINED_QUEUES, QUEUE_SIZE, DEFAULTS_FILE, ...) or a YAML config file.
Needs root, ethtool, cpupower and systemd.

To keep the scheduler off the benchmark cores, boot with e.g.
"isolcpus=120-127 nohz_full=120-127 rcu_nocbs=120-127".
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..core import (
    CpuRange,
    DeviceInspector,
    DeviceState,
    NicBenchError,
    SnapshotStore,
    TuningOrchestrator,
    TuningSettings,
)
from ..core.errors import ConfigError
from ..utils.config_loader import Config, load_config
from ..utils.logger import setup_logging
from .common import add_common_arguments, install_signal_handlers, interrupt_exit_code


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='nic-config',
        description='Tune a NIC for reproducible throughput benchmarks, or revert the tuning',
        usage='%(prog)s [options] {apply|revert}',
    )
    parser.add_argument('action', choices=['apply', 'revert'],
                        help='apply: save defaults then tune; revert: restore saved defaults')
    parser.add_argument('--dry-run', action='store_true',
                        help='Log commands and writes without executing them')
    add_common_arguments(parser)
    return parser


def build_orchestrator(config: Config, state: DeviceState) -> TuningOrchestrator:
    """Wire inspector, snapshot store and orchestrator from configuration"""
    try:
        cpu_range = CpuRange.parse(config.cpu_list)
    except ValueError as e:
        raise ConfigError(f"Invalid CPU_LIST: {e}") from e

    inspector = DeviceInspector(state, config.get("tuning.iface"),
                                irq_pattern=config.get("tuning.irq_pattern"))
    store = SnapshotStore(inspector, config.get("tuning.defaults_file"))
    settings = TuningSettings(
        cpu_range=cpu_range,
        combined_queues=config.combined_queues,
        ring_size=config.get("tuning.queue_size"),
        disable_cstates=config.get("tuning.disable_cstates"),
        stop_irqbalance=config.get("tuning.stop_irqbalance"),
        revert_tx_ring_from=config.get("tuning.revert_tx_ring_from"),
    )
    return TuningOrchestrator(inspector, store, settings)


def main(argv: Optional[List[str]] = None, state: Optional[DeviceState] = None) -> int:
    """Entry point

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])
        state: Device state resource (built from options when omitted)

    Returns:
        0 when every step succeeded, 1 on failure, 2 on configuration error
    """
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)
    install_signal_handlers()

    try:
        config = load_config(args.config)
        state = state or DeviceState(dry_run=args.dry_run)
        orchestrator = build_orchestrator(config, state)
    except ConfigError as e:
        logger.error(str(e))
        return 2

    try:
        if args.action == 'apply':
            report = orchestrator.apply()
        else:
            report = orchestrator.revert()
    except NicBenchError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt as e:
        logger.warning(f"{args.action} interrupted")
        return interrupt_exit_code(e)

    if report.ok:
        logger.info(f"{args.action.capitalize()} complete.")
        return 0

    logger.error(f"{args.action.capitalize()} finished with {len(report.failures)} failed step(s)")
    return 1


if __name__ == '__main__':
    sys.exit(main())
