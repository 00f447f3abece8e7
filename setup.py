#!/usr/bin/env python3
"""
nicbench - NIC tuning and network throughput benchmarking toolkit
"""

from setuptools import setup, find_packages
from pathlib import Path

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding='utf-8')

setup(
    name="nicbench",
    version="1.0.0",
    author="Network Performance Team",
    description="Apply and revert NIC tuning, run iperf3 sweeps and monitor server CPU utilization",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: System Administrators",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: System :: Networking :: Monitoring",
        "Topic :: System :: Benchmark",
    ],
    python_requires=">=3.8",
    install_requires=[
        "PyYAML>=6.0",
        "paramiko>=2.7",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "black>=22.0",
            "flake8>=5.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nic-config=nicbench.cli.nic_config:main",
            "nic-throughput-test=nicbench.cli.throughput_test:main",
            "nic-cpu-monitor=nicbench.cli.cpu_monitor:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
