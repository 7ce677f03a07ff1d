"""
Command line commands for rawdesk
"""

from .edit_commands import COMMANDS as EDIT_COMMANDS
from .batch_commands import COMMANDS as BATCH_COMMANDS

__all__ = ["EDIT_COMMANDS", "BATCH_COMMANDS"]
