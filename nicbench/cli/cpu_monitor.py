#!/usr/bin/env python3
"""Server CPU monitor - total utilization of a core range while benchmarks run

Runs ``mpstat -P START-END 1`` and prints, once per interval:

    <timestamp> - Total CPU utilization for cores 96-127: XX.XX%

Stop with Ctrl+C; the interval in progress is still reported.
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..core.errors import ConfigError
from ..monitoring.mpstat_sampler import MpstatSampler
from ..monitoring.remote_sampler import RemoteMpstatSampler, SSHManager
from ..monitoring.utilization import CsvSink, TotalUtilization, UtilizationAggregator
from ..utils.config_loader import load_config
from ..utils.logger import setup_logging
from .common import add_common_arguments, install_signal_handlers, interrupt_exit_code


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='nic-cpu-monitor',
                                     description='Aggregate per-core mpstat idle time into total utilization')
    parser.add_argument('--start-core', type=int, help='First monitored core (START_CORE)')
    parser.add_argument('--end-core', type=int, help='Last monitored core (END_CORE)')
    parser.add_argument('--interval', type=int, help='Sampling interval in seconds (SAMPLE_INTERVAL)')
    parser.add_argument('--csv', help='Also write records to this CSV file (MONITOR_CSV)')
    parser.add_argument('--host', help='Run mpstat on this ssh_hosts entry instead of locally')
    add_common_arguments(parser)
    return parser


def main(argv: Optional[List[str]] = None, sampler: Optional[MpstatSampler] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, args.log_file)
    install_signal_handlers()

    try:
        config = load_config(args.config)
        for key, value in (("monitor.start_core", args.start_core),
                           ("monitor.end_core", args.end_core),
                           ("monitor.interval", args.interval),
                           ("monitor.csv_file", args.csv)):
            if value is not None:
                config.set(key, value)
        config.validate()
        if args.host and args.host not in config.get("ssh_hosts"):
            raise ConfigError(f"Unknown host reference: {args.host}")
    except ConfigError as e:
        logger.error(str(e))
        return 2

    start_core = config.get("monitor.start_core")
    end_core = config.get("monitor.end_core")
    interval = config.get("monitor.interval")
    binary = config.get("monitor.mpstat_binary")

    ssh_manager = SSHManager(config.get("ssh_hosts"))
    if sampler is None:
        if args.host:
            sampler = RemoteMpstatSampler(ssh_manager, args.host, start_core, end_core,
                                          interval, binary)
        else:
            sampler = MpstatSampler(start_core, end_core, interval, binary)

    csv_file = config.get("monitor.csv_file")
    csv_stream = None
    csv_sink = None
    if csv_file:
        try:
            csv_stream = open(csv_file, "w", newline="", encoding="utf-8")
        except OSError as e:
            logger.error(f"Cannot open CSV file {csv_file}: {e}")
            return 1
        csv_sink = CsvSink(csv_stream)

    def emit(record: TotalUtilization):
        print(record.format(), flush=True)
        if csv_sink is not None:
            csv_sink.write(record)

    aggregator = UtilizationAggregator(start_core, end_core, emit=emit)
    exit_code = 0
    try:
        with ssh_manager:
            aggregator.consume(sampler.samples())
    except KeyboardInterrupt as e:
        exit_code = interrupt_exit_code(e)
    except OSError as e:
        logger.error(f"Monitoring failed: {e}")
        exit_code = 1
    finally:
        if csv_stream is not None:
            csv_stream.close()

    logger.info(f"Reported {len(aggregator.records)} intervals")
    return exit_code


if __name__ == '__main__':
    sys.exit(main())
