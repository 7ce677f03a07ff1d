"""
rawdesk: non-destructive RAW photo editing and export

Orchestrates an external RAW-to-DNG converter and a persistent ExifTool
process to load, save, preview and export per-photo edits, one photo at a
time or in concurrent batches.
"""

__version__ = "0.1.0"

from .config import load_config

__all__ = [
    "load_config",
]
