"""
Batch CLI commands: batch export and workspace pruning
"""

import sys
import threading
from pathlib import Path
import logging

import click
from tqdm import tqdm

from rawdesk.config import get_config_value, workspace_root
from rawdesk.io.workspace import prune_workspaces
from rawdesk.processing.batch import find_photos, write_ndjson
from .options import (
    get_pipeline, edit_settings_options, build_edit_settings,
    export_options, pop_export_settings, fail,
)

logger = logging.getLogger(__name__)

EXIT_PARTIAL_FAILURE = 2


@click.command('batch')
@click.argument('paths', nargs=-1, required=True, type=click.Path(exists=True, path_type=Path))
@click.option('--output-dir', '-o', required=True,
              type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Directory receiving the exports')
@click.option('--workers', '-w', type=click.IntRange(min=1),
              help='Photos exported concurrently (default: batch.max_workers)')
@click.option('--ndjson', is_flag=True, help='Stream outcomes as newline-delimited JSON')
@edit_settings_options
@export_options
@click.pass_context
def batch_cmd(ctx, paths, output_dir, workers, ndjson, settings_file, assignments, camera_wb, **kwargs):
    """
    Export every photo in PATHS (files or directories) to OUTPUT_DIR.

    Exits with status 2 if any photo failed.
    """
    from rawdesk.app import create_batch_engine

    obj = ctx.find_root().obj
    config = obj.get('config', {})
    export = pop_export_settings(kwargs, config)
    settings = build_edit_settings(settings_file, assignments, camera_wb)

    photos = find_photos(paths)
    if not photos:
        fail("No photos found")

    engine = create_batch_engine(config, get_pipeline(ctx), workers)
    cancel = threading.Event()
    run = engine.run(photos, output_dir, settings, export, cancel)

    try:
        if ndjson:
            stats = write_ndjson(run, sys.stdout)
        else:
            with tqdm(total=run.total, desc="Exporting", unit="photo",
                      disable=obj.get('quiet', False)) as pbar:
                for outcome in run:
                    if not outcome.succeeded:
                        tqdm.write(f"✗ {outcome.path}: {outcome.error}", file=sys.stderr)
                    pbar.update(1)
            stats = run.stats
            if not obj.get('quiet'):
                stats.print_summary()
    except KeyboardInterrupt:
        run.cancel()
        fail("Batch cancelled", code=130)

    if not stats.all_succeeded:
        sys.exit(EXIT_PARTIAL_FAILURE)


@click.command('prune-workspaces')
@click.option('--max-age-hours', type=float,
              help='Remove workspaces unused for this long (default: workspace.max_age_hours)')
@click.pass_context
def prune_cmd(ctx, max_age_hours):
    """Delete stale per-photo workspaces."""
    config = ctx.find_root().obj.get('config', {})
    if max_age_hours is None:
        max_age_hours = float(get_config_value(config, 'workspace.max_age_hours', 24))

    root = workspace_root(config)
    removed = prune_workspaces(root, max_age_hours)
    click.echo(f"Removed {removed} workspace(s) from {root}")


COMMANDS = [batch_cmd, prune_cmd]
