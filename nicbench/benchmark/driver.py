#!/usr/bin/env python3
"""Benchmark driver - sweeps concurrency levels with repeats and cool-downs"""

import logging
import os
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .iperf_runner import TrafficGenerator, TrialParams, TrialResult, bps_to_gbps


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BenchmarkTrial:
    """One scheduled trial of the sweep"""
    parallel: int
    iteration: int
    is_last: bool


@dataclass
class SweepSettings:
    server: str
    parallel_threads: List[int]
    duration: int = 60
    repeat_count: int = 3
    sleep_duration: int = 10
    omit_seconds: int = 10
    report_interval: int = 0
    zero_copy: bool = True
    cpu_list: str = "64-127"
    results_dir: Optional[str] = None


@dataclass
class SweepResult:
    """Trial outcomes of a (possibly interrupted) sweep"""
    trials: List[BenchmarkTrial] = field(default_factory=list)
    results: List[TrialResult] = field(default_factory=list)
    interrupted: Optional[KeyboardInterrupt] = None

    def add(self, trial: BenchmarkTrial, result: TrialResult):
        self.trials.append(trial)
        self.results.append(result)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def mean_gbps_by_parallel(self) -> Dict[int, Optional[float]]:
        """Mean receiver throughput per concurrency level, in Gbit/s"""
        samples = defaultdict(list)
        levels = []
        for trial, result in zip(self.trials, self.results):
            if trial.parallel not in levels:
                levels.append(trial.parallel)
            if result.ok and result.throughput_bps is not None:
                samples[trial.parallel].append(result.throughput_bps)

        means = {}
        for level in levels:
            values = samples[level]
            means[level] = bps_to_gbps(sum(values) / len(values)) if values else None
        return means


def plan_trials(parallel_threads: List[int], repeat_count: int) -> List[BenchmarkTrial]:
    """Expand concurrency levels into the ordered trial list"""
    trials = []
    last_index = len(parallel_threads) - 1
    for p_index, parallel in enumerate(parallel_threads):
        for iteration in range(1, repeat_count + 1):
            is_last = p_index == last_index and iteration == repeat_count
            trials.append(BenchmarkTrial(parallel=parallel, iteration=iteration, is_last=is_last))
    return trials


class BenchmarkDriver:
    """Runs the throughput sweep one blocking trial at a time"""

    def __init__(self, generator: TrafficGenerator, settings: SweepSettings,
                 sleep: Callable[[float], None] = time.sleep):
        """Initialize driver

        Args:
            generator: Traffic generator wrapper
            settings: Sweep settings
            sleep: Cool-down function (injectable for tests)
        """
        self.generator = generator
        self.settings = settings
        self.sleep = sleep

    def trial_params(self, trial: BenchmarkTrial) -> TrialParams:
        s = self.settings
        return TrialParams(
            server=s.server,
            parallel=trial.parallel,
            duration=s.duration,
            cpu_list=s.cpu_list,
            interval=s.report_interval,
            omit=s.omit_seconds,
            zero_copy=s.zero_copy,
        )

    def _log_path(self, trial: BenchmarkTrial) -> Optional[str]:
        if not self.settings.results_dir:
            return None
        return os.path.join(self.settings.results_dir,
                            f"iperf3_P{trial.parallel}_iter{trial.iteration}.log")

    def run(self) -> SweepResult:
        """Run every trial, cooling down between trials but not after the last

        An interrupt stops the sweep; trials completed so far are returned
        with ``interrupted`` holding the interrupt.
        """
        s = self.settings
        logger.info(f"Starting iperf3 test iterations against {s.server} "
                    f"(duration {s.duration}s, cool-down {s.sleep_duration}s)")
        if s.results_dir:
            os.makedirs(s.results_dir, exist_ok=True)

        sweep = SweepResult()
        current_parallel = None
        try:
            for trial in plan_trials(s.parallel_threads, s.repeat_count):
                if trial.parallel != current_parallel:
                    if current_parallel is not None:
                        logger.info(f"--- Finished iterations for -P {current_parallel} ---")
                    current_parallel = trial.parallel
                    logger.info(f"--- Testing with -P {trial.parallel} parallel threads ---")

                logger.info(f"--- Running iteration {trial.iteration}/{s.repeat_count} "
                            f"for -P {trial.parallel} ---")
                result = self.generator.run_trial(self.trial_params(trial), self._log_path(trial))
                sweep.add(trial, result)

                if not trial.is_last and s.sleep_duration > 0:
                    logger.info(f"Sleeping for {s.sleep_duration} seconds before next run...")
                    self.sleep(s.sleep_duration)
        except KeyboardInterrupt as e:
            logger.warning("Sweep interrupted")
            sweep.interrupted = e
            return sweep

        if current_parallel is not None:
            logger.info(f"--- Finished iterations for -P {current_parallel} ---")
        logger.info("All iperf3 test iterations complete.")
        return sweep


def format_summary(sweep: SweepResult) -> str:
    """Render a per-concurrency summary table"""
    lines = [f"{'Parallel':>8}  {'Mean Gbit/s':>12}"]
    for parallel, mean in sweep.mean_gbps_by_parallel().items():
        value = f"{mean:.2f}" if mean is not None else "n/a"
        lines.append(f"{parallel:>8}  {value:>12}")
    lines.append(f"Trials: {len(sweep.results)}, failed: {sweep.failed}"
                 + (" (interrupted)" if sweep.interrupted else ""))
    return "\n".join(lines)
