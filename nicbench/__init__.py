"""nicbench - NIC tuning, throughput sweeps and CPU utilization monitoring for network benchmarks"""

__version__ = "1.0.0"
