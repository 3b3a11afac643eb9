"""
Nexi

A persistent, personality-driven conversational agent with long-term memory.
"""

from .app import Nexi, create_nexi
from .config import Config, load_config
from .memory import MemoryManager, MemoryRecord, MemoryType
from .state import BehavioralMode, Energy, Mood

__version__ = "0.1.0"

__all__ = [
    'Nexi',
    'create_nexi',
    'Config',
    'load_config',
    'MemoryManager',
    'MemoryRecord',
    'MemoryType',
    'BehavioralMode',
    'Energy',
    'Mood',
]
