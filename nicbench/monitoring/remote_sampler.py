#!/usr/bin/env python3
"""Remote sampler - runs mpstat on an SSH host and streams its output"""

import logging
import shlex
from typing import Dict, Iterator, List

import paramiko

from .mpstat_sampler import MpstatSampler


logger = logging.getLogger(__name__)


class SSHManager:
    """SSH connection manager keyed by host reference"""

    def __init__(self, ssh_hosts: Dict[str, Dict]):
        """Initialize SSH manager

        Args:
            ssh_hosts: Host reference -> {host, user, port, key_filename}
        """
        self.ssh_hosts = ssh_hosts
        self.clients = {}

    def connect(self, host_ref: str) -> paramiko.SSHClient:
        """Establish (or reuse) an SSH connection

        Args:
            host_ref: SSH host reference

        Returns:
            SSH client instance
        """
        if host_ref in self.clients:
            return self.clients[host_ref]

        if host_ref not in self.ssh_hosts:
            raise ValueError(f"Unknown host reference: {host_ref}")

        host_config = self.ssh_hosts[host_ref]

        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        try:
            client.connect(
                hostname=host_config['host'],
                port=host_config.get('port', 22),
                username=host_config.get('user'),
                key_filename=host_config.get('key_filename'),
                timeout=10
            )
        except Exception as e:
            logger.error(f"Failed to connect to {host_ref}: {str(e)}")
            raise

        self.clients[host_ref] = client
        logger.info(f"Connected to {host_ref} ({host_config['host']})")
        return client

    def stream_command(self, host_ref: str, command: List[str]) -> Iterator[str]:
        """Run a long-lived remote command and yield its stdout lines

        A pty is requested so the remote process is hung up when the
        channel closes.

        Args:
            host_ref: SSH host reference
            command: Command and arguments

        Yields:
            Output lines
        """
        client = self.connect(host_ref)
        remote_cmd = shlex.join(command)
        logger.debug(f"Running on {host_ref}: {remote_cmd}")

        stdin, stdout, stderr = client.exec_command(remote_cmd, get_pty=True)
        try:
            for line in stdout:
                yield line
        finally:
            stdout.channel.close()
            if stdout.channel.exit_status_ready():
                status = stdout.channel.recv_exit_status()
                if status not in (0, -1):
                    logger.warning(f"Remote command on {host_ref} exited with status {status}")

    def close_all(self):
        """Close all SSH connections"""
        for host_ref, client in self.clients.items():
            try:
                client.close()
                logger.info(f"Closed connection to {host_ref}")
            except Exception as e:
                logger.error(f"Error closing connection to {host_ref}: {str(e)}")
        self.clients.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close_all()


class RemoteMpstatSampler(MpstatSampler):
    """mpstat sampler whose process runs on a remote host"""

    def __init__(self, ssh_manager: SSHManager, host_ref: str, start_core: int,
                 end_core: int, interval: int = 1, binary: str = "mpstat"):
        super().__init__(start_core, end_core, interval, binary)
        self.ssh_manager = ssh_manager
        self.host_ref = host_ref

    def command(self) -> List[str]:
        return ["env", "LC_NUMERIC=C"] + super().command()

    def lines(self) -> Iterator[str]:
        logger.info(f"Starting mpstat monitoring on {self.host_ref} "
                    f"for cores {self.start_core}-{self.end_core}...")
        return self.ssh_manager.stream_command(self.host_ref, self.command())

