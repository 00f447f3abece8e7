"""Command line entry points: nic-config, nic-throughput-test, nic-cpu-monitor"""
