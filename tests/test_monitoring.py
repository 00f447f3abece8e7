"""Tests for mpstat parsing and per-interval utilization totals"""

import io

import pytest

from nicbench.monitoring.mpstat_sampler import (
    MpstatSampler,
    UtilizationSample,
    parse_mpstat_line,
    parse_mpstat_stream,
)
from nicbench.monitoring.utilization import CsvSink, UtilizationAggregator


# mpstat -P 96-97 1, 24h clock
MPSTAT_OUTPUT = """Linux 5.15.0-91-generic (server01) \t05/01/2024 \t_x86_64_\t(128 CPU)

14:02:10     CPU    %usr   %nice    %sys %iowait    %irq   %soft  %steal  %guest  %gnice   %idle
14:02:11      96    0.00    0.00    1.00    0.00    0.00    0.00    0.00    0.00    0.00   99.00
14:02:11      97    0.00    0.00    0.50    0.00    0.00    1.00    0.00    0.00    0.00   98.50

14:02:11     CPU    %usr   %nice    %sys %iowait    %irq   %soft  %steal  %guest  %gnice   %idle
14:02:12      96   10.00    0.00   20.00    0.00    0.00   30.00    0.00    0.00    0.00   40.00
14:02:12      97    0.00    0.00    0.00    0.00    0.00   50.00    0.00    0.00    0.00   50.00

Average:     CPU    %usr   %nice    %sys %iowait    %irq   %soft  %steal  %guest  %gnice   %idle
Average:      96    5.00    0.00   10.50    0.00    0.00   15.00    0.00    0.00    0.00   69.50
Average:      97    0.00    0.00    0.25    0.00    0.00   25.50    0.00    0.00    0.00   74.25
"""

# 12h clock
MPSTAT_AMPM = """02:02:11 PM     96    0.00    0.00    1.00    0.00    0.00    0.00    0.00    0.00    0.00   99.00
02:02:11 PM     97    0.00    0.00    0.50    0.00    0.00    1.00    0.00    0.00    0.00   98.50
02:02:12 PM     96    0.00    0.00    0.00    0.00    0.00    0.00    0.00    0.00    0.00  100.00
"""


class TestParser:

    def test_data_line(self):
        sample = parse_mpstat_line(MPSTAT_OUTPUT.splitlines()[3])
        assert sample == UtilizationSample(timestamp="14:02:11", cpu=96, idle=99.0)

    @pytest.mark.parametrize("line", [
        "",
        "   \n",
        "Linux 5.15.0-91-generic (server01) \t05/01/2024 \t_x86_64_\t(128 CPU)",
        "14:02:10     CPU    %usr   %nice    %sys %iowait    %irq   %soft  %steal  %guest  %gnice   %idle",
        "14:02:11     all    0.00    0.00    1.00    0.00    0.00    0.00    0.00    0.00    0.00   99.00",
        "Average:      96    5.00    0.00   10.50    0.00    0.00   15.00    0.00    0.00    0.00   69.50",
        "14:02:11      96    0.00    0.00    1.00    0.00    0.00    0.00    0.00    0.00    0.00   99,00",
    ])
    def test_ignored_lines(self, line):
        assert parse_mpstat_line(line) is None

    def test_am_pm_kept_in_timestamp(self):
        samples = list(parse_mpstat_stream(io.StringIO(MPSTAT_AMPM)))
        assert [s.timestamp for s in samples] == ["02:02:11 PM", "02:02:11 PM", "02:02:12 PM"]
        assert [s.cpu for s in samples] == [96, 97, 96]

    def test_stream_skips_headers_and_average(self):
        samples = list(parse_mpstat_stream(io.StringIO(MPSTAT_OUTPUT)))
        assert len(samples) == 4
        assert {s.timestamp for s in samples} == {"14:02:11", "14:02:12"}

    def test_command(self):
        assert MpstatSampler(96, 127).command() == ["mpstat", "-P", "96-127", "1"]


class TestAggregator:

    def test_flush_on_timestamp_boundary(self):
        aggregator = UtilizationAggregator(96, 97)
        samples = list(parse_mpstat_stream(io.StringIO(MPSTAT_OUTPUT)))

        assert aggregator.feed(samples[0]) is None
        assert aggregator.feed(samples[1]) is None
        record = aggregator.feed(samples[2])
        assert record.timestamp == "14:02:11"
        assert record.total == pytest.approx(2.5)
        assert record.cores_seen == 2

    def test_consume_flushes_final_interval(self):
        records = UtilizationAggregator(96, 97).consume(
            parse_mpstat_stream(io.StringIO(MPSTAT_OUTPUT)))
        assert [r.timestamp for r in records] == ["14:02:11", "14:02:12"]
        assert records[1].total == pytest.approx(110.0)

    def test_format(self):
        records = UtilizationAggregator(96, 97).consume(
            parse_mpstat_stream(io.StringIO(MPSTAT_OUTPUT)))
        assert records[0].format() == "14:02:11 - Total CPU utilization for cores 96-97: 2.50%"

    def test_interrupt_flushes_partial_interval(self):
        emitted = []

        def interrupted_stream():
            yield UtilizationSample("14:02:11", 96, 99.0)
            yield UtilizationSample("14:02:11", 97, 98.5)
            yield UtilizationSample("14:02:12", 96, 90.0)
            raise KeyboardInterrupt

        aggregator = UtilizationAggregator(96, 97, emit=emitted.append)
        with pytest.raises(KeyboardInterrupt):
            aggregator.consume(interrupted_stream())

        assert [r.timestamp for r in emitted] == ["14:02:11", "14:02:12"]
        # Missing cores count as fully busy
        assert emitted[1].total == pytest.approx(110.0)
        assert emitted[1].cores_seen == 1

    def test_out_of_range_cores_ignored(self):
        aggregator = UtilizationAggregator(96, 96)
        records = aggregator.consume([
            UtilizationSample("t1", 95, 10.0),
            UtilizationSample("t1", 96, 75.0),
            UtilizationSample("t2", 0, 0.0),
        ])
        assert len(records) == 1
        assert records[0].total == pytest.approx(25.0)

    def test_empty_stream_emits_nothing(self):
        assert UtilizationAggregator(96, 127).consume([]) == []

    def test_csv_sink(self):
        stream = io.StringIO()
        sink = CsvSink(stream)
        UtilizationAggregator(96, 97, emit=sink.write).consume(
            parse_mpstat_stream(io.StringIO(MPSTAT_OUTPUT)))
        assert stream.getvalue().splitlines() == [
            "timestamp,start_core,end_core,total_utilization",
            "14:02:11,96,97,2.50",
            "14:02:12,96,97,110.00",
        ]
