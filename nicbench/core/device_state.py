#!/usr/bin/env python3
"""Device state resource - single access point for control files and system commands"""

import glob
import logging
import os
import shlex
import subprocess
from typing import List, Optional

from .errors import CommandFailed


logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs local system commands (ethtool, systemctl, cpupower)"""

    def __init__(self, timeout: Optional[int] = 60):
        """Initialize command runner

        Args:
            timeout: Per-command timeout in seconds
        """
        self.timeout = timeout

    def run(self, cmd: List[str], check: bool = True) -> str:
        """Execute command and return its stdout

        Args:
            cmd: Command and arguments
            check: Raise CommandFailed on non-zero exit

        Returns:
            Captured stdout
        """
        logger.debug(f"Running: {shlex.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise CommandFailed(cmd, 127, str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandFailed(cmd, -1, f"timed out after {self.timeout}s") from e

        if check and result.returncode != 0:
            raise CommandFailed(cmd, result.returncode, result.stderr)

        return result.stdout


class DeviceState:
    """Kernel/NIC control files and system commands behind one object.

    All sysfs/procfs reads and writes go through this class so the rest of
    the engine never touches the filesystem directly. ``root`` prefixes every
    system path, which lets a test point the engine at a fake tree; paths
    handed in and out of this class are always system paths
    (``/proc/irq/42/smp_affinity_list``), never the prefixed location.

    In dry-run mode mutating commands and file writes are logged instead of
    executed, reads still go to the real files.
    """

    def __init__(self, root: str = "/", runner: Optional[CommandRunner] = None,
                 dry_run: bool = False):
        self.root = root
        self.runner = runner or CommandRunner()
        self.dry_run = dry_run

    def _resolve(self, path: str) -> str:
        return os.path.join(self.root, path.lstrip("/"))

    def read_text(self, path: str) -> str:
        """Read a control file and return its stripped content"""
        with open(self._resolve(path), "r") as f:
            return f.read().strip()

    def read_lines(self, path: str) -> List[str]:
        """Read a control file as a list of lines"""
        with open(self._resolve(path), "r") as f:
            return f.read().splitlines()

    def write_text(self, path: str, value: str):
        """Write a value into a control file

        Args:
            path: System path of the control file
            value: Value to write (a trailing newline is added)
        """
        if self.dry_run:
            logger.info(f"[dry-run] echo {value} > {path}")
            return

        resolved = self._resolve(path)
        # Control files are never created, only overwritten
        if not os.path.exists(resolved):
            raise FileNotFoundError(f"Control file does not exist: {path}")

        logger.debug(f"Writing '{value}' to {path}")
        with open(resolved, "w") as f:
            f.write(f"{value}\n")

    def exists(self, path: str) -> bool:
        return os.path.exists(self._resolve(path))

    def glob(self, pattern: str) -> List[str]:
        """Expand a system path pattern

        Args:
            pattern: Glob pattern on system paths

        Returns:
            Matching system paths in lexical order
        """
        prefix = self._resolve("/")
        matches = glob.glob(self._resolve(pattern))
        return sorted("/" + os.path.relpath(m, prefix) for m in matches)

    def query(self, cmd: List[str], check: bool = True) -> str:
        """Run a read-only command, executed even in dry-run mode"""
        return self.runner.run(cmd, check=check)

    def execute(self, cmd: List[str]) -> str:
        """Run a command that changes system state"""
        if self.dry_run:
            logger.info(f"[dry-run] {shlex.join(cmd)}")
            return ""
        return self.runner.run(cmd)
