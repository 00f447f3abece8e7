#!/usr/bin/env python3
"""Affinity mask engine - CPU range specs, IRQ affinity lists and RPS/XPS hex masks"""

import logging
from typing import FrozenSet, Iterable, Iterator, List

from .device_state import DeviceState


logger = logging.getLogger(__name__)

SEGMENT_BITS = 32


class CpuRange:
    """Normalized set of CPU indices parsed from a spec like ``0-7,16``"""

    def __init__(self, spec: str, cpus: Iterable[int]):
        self.spec = spec
        self.cpus: FrozenSet[int] = frozenset(cpus)

    @classmethod
    def parse(cls, spec: str) -> "CpuRange":
        """Parse a comma-separated list of CPU indices and dashed ranges

        Args:
            spec: CPU list specification, e.g. "0-7,16"

        Returns:
            CpuRange

        Raises:
            ValueError: entry is not a non-negative integer or an
                ascending ``start-end`` range
        """
        entries = [entry.strip() for entry in spec.split(",")]
        entries = [entry for entry in entries if entry]
        if not entries:
            raise ValueError(f"Empty CPU list: {spec!r}")

        cpus = set()
        for entry in entries:
            if "-" in entry:
                start_str, _, end_str = entry.partition("-")
                start, end = _parse_index(start_str, spec), _parse_index(end_str, spec)
                if end < start:
                    raise ValueError(f"Reversed CPU range {entry!r} in {spec!r}")
                cpus.update(range(start, end + 1))
            else:
                cpus.add(_parse_index(entry, spec))

        return cls(",".join(entries), cpus)

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self.cpus))

    def __len__(self) -> int:
        return len(self.cpus)

    def __contains__(self, cpu: int) -> bool:
        return cpu in self.cpus

    def __eq__(self, other) -> bool:
        if not isinstance(other, CpuRange):
            return NotImplemented
        return self.cpus == other.cpus

    def __hash__(self) -> int:
        return hash(self.cpus)

    def __repr__(self) -> str:
        return f"CpuRange({self.spec!r})"

    def __str__(self) -> str:
        return self.spec


def _parse_index(text: str, spec: str) -> int:
    text = text.strip()
    if not text.isdigit():
        raise ValueError(f"Invalid CPU index {text!r} in {spec!r}")
    return int(text)


def affinity_list(cpu_range: CpuRange) -> str:
    """Textual form accepted natively by /proc/irq/<n>/smp_affinity_list"""
    return cpu_range.spec


def build_hex_mask(cpu_range: CpuRange, segment_count: int) -> str:
    """Render a CPU set as a comma-separated 32-bit hex mask

    Segment ``i`` holds CPUs ``32*i .. 32*i+31``. Segments are emitted from
    the highest index down to 0, which is the order rps_cpus/xps_cpus
    expect. CPUs whose segment index does not fit in ``segment_count`` are
    dropped.

    Args:
        cpu_range: CPUs to set
        segment_count: Number of 32-bit groups in the output

    Returns:
        Mask such as "00000000,000000ff"
    """
    if segment_count < 1:
        raise ValueError(f"Segment count must be positive, got {segment_count}")

    segments = [0] * segment_count
    dropped = []
    for cpu in cpu_range:
        index, bit = divmod(cpu, SEGMENT_BITS)
        if index >= segment_count:
            dropped.append(cpu)
            continue
        segments[index] |= 1 << bit

    if dropped:
        logger.debug(f"CPUs {dropped} exceed {segment_count * SEGMENT_BITS}-bit mask, ignored")

    return ",".join(f"{segment:08x}" for segment in reversed(segments))


def segment_count_of(content: str) -> int:
    """Number of comma-separated groups in a steering file's content"""
    return len(content.strip().split(","))


def hex_mask_for_file(state: DeviceState, path: str, cpu_range: CpuRange) -> str:
    """Build a hex mask sized after the current content of ``path``"""
    current = state.read_text(path)
    return build_hex_mask(cpu_range, segment_count_of(current))


def mask_to_cpus(mask: str) -> List[int]:
    """Decode a comma-separated hex mask back into CPU indices"""
    groups = mask.strip().split(",")
    cpus = []
    for index, group in enumerate(reversed(groups)):
        value = int(group, 16) if group else 0
        for bit in range(SEGMENT_BITS):
            if value & (1 << bit):
                cpus.append(index * SEGMENT_BITS + bit)
    return cpus
