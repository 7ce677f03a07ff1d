"""
Wiring for rawdesk: builds the edit pipeline and batch engine from a
configuration.
"""

from typing import Any, Dict, Optional
import logging

from rawdesk.config import (
    get_config_value, exiftool_path, dng_converter_path, workspace_root,
)
from rawdesk.io.dng_converter import DNGConverter
from rawdesk.io.exiftool_server import ExifToolServer, start_server
from rawdesk.io.metadata import MetadataBridge
from rawdesk.processing.batch import BatchEngine, DEFAULT_MAX_WORKERS
from rawdesk.processing.edit_pipeline import EditPipeline, EDIT_CACHE_SIZE

logger = logging.getLogger(__name__)


def create_pipeline(config: Dict[str, Any],
                    server: Optional[ExifToolServer] = None) -> EditPipeline:
    """
    Build an edit pipeline for config.

    Args:
        config: Loaded configuration
        server: ExifTool server to use; the process-wide one is started if None
    """
    if server is None:
        server = start_server(exiftool_path(config))

    converter = DNGConverter(dng_converter_path(config))
    root = workspace_root(config)
    logger.debug(f"Workspace root: {root}, DNG converter: {converter.executable}")

    return EditPipeline(
        converter,
        MetadataBridge(server),
        root,
        edit_cache_size=int(get_config_value(config, 'preview.edit_cache_size', EDIT_CACHE_SIZE)),
    )


def create_batch_engine(config: Dict[str, Any], pipeline: EditPipeline,
                        max_workers: Optional[int] = None) -> BatchEngine:
    """Batch engine over pipeline; max_workers overrides batch.max_workers."""
    if max_workers is None:
        max_workers = int(get_config_value(config, 'batch.max_workers', DEFAULT_MAX_WORKERS))
    return BatchEngine(pipeline, max_workers=max_workers)
