#!/usr/bin/env python3
"""Utilization aggregator - per-interval busy percentage across a core range"""

import csv
import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, TextIO

from .mpstat_sampler import UtilizationSample


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TotalUtilization:
    """Aggregate busy percentage of the core range for one interval"""
    timestamp: str
    start_core: int
    end_core: int
    total: float
    cores_seen: int

    def format(self) -> str:
        return (f"{self.timestamp} - Total CPU utilization for cores "
                f"{self.start_core}-{self.end_core}: {self.total:.2f}%")


class UtilizationAggregator:
    """Sums idle time per timestamp and flushes on every timestamp change

    The total for an interval is ``num_cores * 100 - sum(idle)`` where
    ``num_cores`` is the size of the configured range.
    """

    def __init__(self, start_core: int, end_core: int,
                 emit: Optional[Callable[[TotalUtilization], None]] = None):
        """Initialize aggregator

        Args:
            start_core: First core of the range (inclusive)
            end_core: Last core of the range (inclusive)
            emit: Called with each flushed record
        """
        self.start_core = start_core
        self.end_core = end_core
        self.num_cores = end_core - start_core + 1
        self.emit = emit
        self.records: List[TotalUtilization] = []
        self._timestamp = None
        self._idle_sum = 0.0
        self._core_count = 0

    def feed(self, sample: UtilizationSample) -> Optional[TotalUtilization]:
        """Account one sample; returns the record flushed by a timestamp change"""
        flushed = None
        if self._timestamp is not None and sample.timestamp != self._timestamp:
            flushed = self.flush()

        self._timestamp = sample.timestamp
        if self.start_core <= sample.cpu <= self.end_core:
            self._idle_sum += sample.idle
            self._core_count += 1
        return flushed

    def flush(self) -> Optional[TotalUtilization]:
        """Emit the interval being accumulated, if it saw any in-range core"""
        record = None
        if self._core_count > 0:
            record = TotalUtilization(
                timestamp=self._timestamp,
                start_core=self.start_core,
                end_core=self.end_core,
                total=self.num_cores * 100 - self._idle_sum,
                cores_seen=self._core_count,
            )
            if self._core_count != self.num_cores:
                logger.debug(f"{self._timestamp}: {self._core_count}/{self.num_cores} cores reported")
            self.records.append(record)
            if self.emit is not None:
                self.emit(record)

        self._idle_sum = 0.0
        self._core_count = 0
        return record

    def consume(self, samples: Iterable[UtilizationSample]) -> List[TotalUtilization]:
        """Aggregate a sample stream until it ends or is interrupted

        The interval in progress is flushed in both cases; the interrupt
        is re-raised afterwards.
        """
        try:
            for sample in samples:
                self.feed(sample)
        finally:
            self.flush()
        return self.records


class CsvSink:
    """Appends flushed records to a CSV file"""

    FIELDS = ["timestamp", "start_core", "end_core", "total_utilization"]

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.writer = csv.writer(stream)
        self.writer.writerow(self.FIELDS)

    def write(self, record: TotalUtilization):
        self.writer.writerow([record.timestamp, record.start_core, record.end_core,
                              f"{record.total:.2f}"])
        self.stream.flush()
