"""Per-core CPU utilization sampling and aggregation"""

from .mpstat_sampler import MpstatSampler, UtilizationSample, parse_mpstat_line, parse_mpstat_stream
from .utilization import CsvSink, TotalUtilization, UtilizationAggregator

__all__ = [
    'MpstatSampler', 'UtilizationSample', 'parse_mpstat_line', 'parse_mpstat_stream',
    'CsvSink', 'TotalUtilization', 'UtilizationAggregator',
]
