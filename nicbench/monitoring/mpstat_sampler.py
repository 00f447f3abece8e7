#!/usr/bin/env python3
"""mpstat sampler - spawns mpstat and parses per-core idle samples"""

import logging
import os
import re
import subprocess
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional


logger = logging.getLogger(__name__)

IDLE_RE = re.compile(r"^[0-9]*\.?[0-9]+$")


@dataclass(frozen=True)
class UtilizationSample:
    """Idle percentage of one core in one interval"""
    timestamp: str
    cpu: int
    idle: float


def parse_mpstat_line(line: str) -> Optional[UtilizationSample]:
    """Parse a single ``mpstat -P <range> <interval>`` output line

    Format (24h clock):
        14:02:11     96    0.00    0.00    1.01    0.00    0.00    2.02    0.00    0.00    0.00   96.97

    With a 12h clock the time is followed by AM/PM, which is kept as part
    of the timestamp. Only the timestamp, the CPU number and the last
    column (%idle) are used.

    Args:
        line: Line from mpstat output

    Returns:
        UtilizationSample, or None for blank, header, banner, "all" and
        "Average:" lines
    """
    # Header lines and the "Linux ... (128 CPU)" banner both mention CPU
    if not line.strip() or "CPU" in line:
        return None

    parts = line.split()
    if parts[0].startswith("Average"):
        return None

    if len(parts) > 2 and parts[1] in ("AM", "PM"):
        timestamp = f"{parts[0]} {parts[1]}"
        fields = parts[2:]
    else:
        timestamp = parts[0]
        fields = parts[1:]

    if len(fields) < 2 or not fields[0].isdigit():
        return None

    idle = fields[-1]
    if not IDLE_RE.match(idle):
        logger.debug(f"Skipping non-numeric idle value: {line.strip()}")
        return None

    return UtilizationSample(timestamp=timestamp, cpu=int(fields[0]), idle=float(idle))


def parse_mpstat_stream(lines: Iterable[str]) -> Iterator[UtilizationSample]:
    """Lazily turn mpstat output lines into samples"""
    for line in lines:
        sample = parse_mpstat_line(line)
        if sample is not None:
            yield sample


class MpstatSampler:
    """Local mpstat process producing an unbounded sample stream"""

    def __init__(self, start_core: int, end_core: int, interval: int = 1,
                 binary: str = "mpstat"):
        self.start_core = start_core
        self.end_core = end_core
        self.interval = interval
        self.binary = binary

    def command(self) -> List[str]:
        return [self.binary, "-P", f"{self.start_core}-{self.end_core}", str(self.interval)]

    def lines(self) -> Iterator[str]:
        """Yield mpstat stdout lines until it exits; the child is stopped on close"""
        cmd = self.command()
        logger.info(f"Starting mpstat monitoring for cores {self.start_core}-{self.end_core}...")
        logger.debug(f"Running: {' '.join(cmd)}")

        # Decimal point must be '.' for the idle column
        env = dict(os.environ, LC_NUMERIC="C")
        proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, text=True, bufsize=1, env=env)
        try:
            for line in proc.stdout:
                yield line
        finally:
            if proc.poll() is None:
                proc.terminate()
            proc.wait()
            proc.stdout.close()
            if proc.returncode not in (0, -15):
                logger.warning(f"mpstat exited with status {proc.returncode}")

    def samples(self) -> Iterator[UtilizationSample]:
        return parse_mpstat_stream(self.lines())
