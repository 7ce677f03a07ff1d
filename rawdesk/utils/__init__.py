"""
Utility modules for rawdesk
"""

from .file_ops import publish_file, move_file, unique_filename, write_new_file
from .logging import setup_console_logging, StructuredLogger, BatchStats

__all__ = [
    'publish_file',
    'move_file',
    'unique_filename',
    'write_new_file',
    'setup_console_logging',
    'StructuredLogger',
    'BatchStats',
]
