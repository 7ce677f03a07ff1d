"""
External tool bridges and the per-photo workspace
"""

from .workspace import Workspace, prune_workspaces
from .exiftool_server import ExifToolServer, start_server, get_server, shutdown_server
from .metadata import MetadataBridge
from .dng_converter import DNGConverter

__all__ = [
    'Workspace',
    'prune_workspaces',
    'ExifToolServer',
    'start_server',
    'get_server',
    'shutdown_server',
    'MetadataBridge',
    'DNGConverter',
]
