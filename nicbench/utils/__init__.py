"""Configuration and logging helpers"""

from .config_loader import Config, load_config
from .logger import setup_logging

__all__ = ['Config', 'load_config', 'setup_logging']
