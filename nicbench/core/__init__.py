"""NIC tuning engine: inspection, snapshots, affinity masks and orchestration"""

from .affinity import CpuRange, affinity_list, build_hex_mask, hex_mask_for_file
from .device_state import CommandRunner, DeviceState
from .errors import (
    CommandFailed,
    ConfigError,
    DeviceNotFound,
    NicBenchError,
    RestoreEntryFailed,
    SnapshotFormatError,
    SnapshotMissing,
    StepFailed,
)
from .inspector import DeviceInspector, InterfaceIdentity, IrqLine
from .report import StepResult, TuningReport
from .snapshot import DeviceSnapshot, SnapshotStore
from .tuner import TuningOrchestrator, TuningSettings

__all__ = [
    'CpuRange', 'affinity_list', 'build_hex_mask', 'hex_mask_for_file',
    'CommandRunner', 'DeviceState',
    'CommandFailed', 'ConfigError', 'DeviceNotFound', 'NicBenchError',
    'RestoreEntryFailed', 'SnapshotFormatError', 'SnapshotMissing', 'StepFailed',
    'DeviceInspector', 'InterfaceIdentity', 'IrqLine',
    'StepResult', 'TuningReport',
    'DeviceSnapshot', 'SnapshotStore',
    'TuningOrchestrator', 'TuningSettings',
]
