#!/usr/bin/env python3
"""Traffic generator wrapper - runs one iperf3 client trial pinned with taskset"""

import logging
import re
import shlex
import subprocess
import sys
from dataclasses import dataclass
from typing import List, Optional, TextIO


logger = logging.getLogger(__name__)

# "[SUM]   0.00-60.00  sec   650 GBytes  93.1 Gbits/sec   receiver"
RATE_RE = re.compile(r"([\d.]+)\s+([KMGT]?)bits/sec")

UNIT_SCALE = {"": 1, "K": 1e3, "M": 1e6, "G": 1e9, "T": 1e12}


@dataclass
class TrialParams:
    """Parameters of one traffic generator invocation"""
    server: str
    parallel: int
    duration: int
    cpu_list: str
    interval: int = 0
    omit: int = 0
    zero_copy: bool = True


@dataclass
class TrialResult:
    """Outcome of one traffic generator invocation"""
    exit_status: int
    output: str = ""
    throughput_bps: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


def bps_to_gbps(bps: float) -> float:
    """Convert bits per second to gigabits per second (2 decimals)"""
    return round(bps / 1e9, 2)


def parse_receiver_throughput(output: str) -> Optional[float]:
    """Receiver-side throughput in bits/sec from iperf3 text output

    With several streams the ``[SUM]`` receiver line wins; with a single
    stream the per-stream receiver line is the total.

    Args:
        output: iperf3 client stdout

    Returns:
        Bits per second, or None if no receiver summary is present
    """
    receiver_lines = [line for line in output.splitlines() if line.rstrip().endswith("receiver")]
    if not receiver_lines:
        return None

    sum_lines = [line for line in receiver_lines if "[SUM]" in line]
    line = (sum_lines or receiver_lines)[-1]

    match = RATE_RE.search(line)
    if not match:
        return None
    value, unit = match.groups()
    return float(value) * UNIT_SCALE[unit]


class TrafficGenerator:
    """Runs iperf3 client trials as blocking subprocesses"""

    def __init__(self, binary: str = "iperf3", echo: Optional[TextIO] = None):
        """Initialize traffic generator

        Args:
            binary: iperf3 executable
            echo: Stream receiving the tool's output as it runs
        """
        self.binary = binary
        self.echo = sys.stdout if echo is None else echo

    def build_command(self, params: TrialParams) -> List[str]:
        cmd = ["taskset", "-c", params.cpu_list,
               self.binary, "-c", params.server,
               "-P", str(params.parallel),
               "-t", str(params.duration)]
        if params.zero_copy:
            cmd.append("-Z")
        cmd.extend(["-i", str(params.interval)])
        if params.omit > 0:
            cmd.extend(["-O", str(params.omit)])
        return cmd

    def run_trial(self, params: TrialParams, log_path: Optional[str] = None) -> TrialResult:
        """Run one trial and wait for it to exit

        The child is terminated if this process is interrupted.

        Args:
            params: Trial parameters
            log_path: Optional file receiving the tool's stdout

        Returns:
            TrialResult
        """
        cmd = self.build_command(params)
        logger.info(f"Executing: {shlex.join(cmd)}")

        try:
            proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT,
                                    text=True, bufsize=1)
        except FileNotFoundError as e:
            logger.error(f"Cannot start traffic generator: {e}")
            return TrialResult(exit_status=127)

        lines = []
        try:
            for line in proc.stdout:
                lines.append(line)
                self.echo.write(line)
                self.echo.flush()
            proc.wait()
        except BaseException:
            proc.terminate()
            proc.wait()
            raise
        finally:
            proc.stdout.close()

        output = "".join(lines)
        if log_path:
            with open(log_path, "w", encoding="utf-8") as f:
                f.write(output)

        result = TrialResult(exit_status=proc.returncode, output=output,
                             throughput_bps=parse_receiver_throughput(output))
        if not result.ok:
            logger.error(f"Traffic generator exited with status {proc.returncode}")
        elif result.throughput_bps is not None:
            logger.info(f"Receiver throughput: {bps_to_gbps(result.throughput_bps)} Gbits/sec")
        return result
