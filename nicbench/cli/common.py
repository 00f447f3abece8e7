"""Shared command line plumbing: logging options and signal handling"""

import argparse
import signal


class Terminated(KeyboardInterrupt):
    """Raised in the main thread when SIGTERM/SIGHUP arrives"""

    def __init__(self, signum: int):
        super().__init__(signum)
        self.signum = signum


def _raise_terminated(signum, frame):
    raise Terminated(signum)


def install_signal_handlers():
    """Turn SIGTERM and SIGHUP into an interrupt so cleanup code runs"""
    signal.signal(signal.SIGTERM, _raise_terminated)
    signal.signal(signal.SIGHUP, _raise_terminated)


def interrupt_exit_code(exc: KeyboardInterrupt) -> int:
    """128 + signal number, as a shell reports a signal death"""
    if isinstance(exc, Terminated):
        return 128 + exc.signum
    return 128 + signal.SIGINT


def add_common_arguments(parser: argparse.ArgumentParser):
    parser.add_argument('--config', default=None,
                        help='YAML configuration file (default: $NICBENCH_CONFIG)')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level')
    parser.add_argument('--log-file', default=None,
                        help='Also write DEBUG logs to this file')
