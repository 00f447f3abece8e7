#!/usr/bin/env python3
"""Error taxonomy for NIC tuning and benchmarking"""

from typing import List, Optional


class NicBenchError(Exception):
    """Base class for all nicbench errors"""


class ConfigError(NicBenchError):
    """Invalid or inconsistent configuration value"""


class DeviceNotFound(NicBenchError):
    """Interface does not exist or exposes no bus address"""

    def __init__(self, iface: str, reason: str = ""):
        self.iface = iface
        self.reason = reason
        message = f"Device not found: {iface}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class SnapshotMissing(NicBenchError):
    """No saved device snapshot to revert from"""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No defaults file found at {path}. Cannot revert.")


class SnapshotFormatError(NicBenchError):
    """Snapshot file exists but contains a line that cannot be parsed"""

    def __init__(self, path: str, line_no: int, line: str):
        self.path = path
        self.line_no = line_no
        self.line = line
        super().__init__(f"{path}:{line_no}: unparsable snapshot line: {line!r}")


class CommandFailed(NicBenchError):
    """External command exited with a non-zero status"""

    def __init__(self, cmd: List[str], returncode: int, stderr: Optional[str] = None):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"Command failed ({returncode}): {' '.join(self.cmd)}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class StepFailed(NicBenchError):
    """A tuning step failed; recoverable during apply"""

    def __init__(self, step: str, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"Step {step} failed: {cause}")


class RestoreEntryFailed(NicBenchError):
    """A single snapshot entry could not be restored; recoverable during revert"""

    def __init__(self, path: str, cause: BaseException):
        self.path = path
        self.cause = cause
        super().__init__(f"Failed to restore {path}: {cause}")
