"""Throughput benchmark sweep around an external traffic generator"""

from .driver import BenchmarkDriver, BenchmarkTrial, SweepResult, SweepSettings, plan_trials
from .iperf_runner import TrafficGenerator, TrialParams, TrialResult, parse_receiver_throughput

__all__ = [
    'BenchmarkDriver', 'BenchmarkTrial', 'SweepResult', 'SweepSettings', 'plan_trials',
    'TrafficGenerator', 'TrialParams', 'TrialResult', 'parse_receiver_throughput',
]
