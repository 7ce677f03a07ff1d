"""
Single photo CLI commands: settings, save, preview, export,
white-balance and meta
"""

import json
from pathlib import Path
import logging

import click

from rawdesk.errors import RawDeskError
from rawdesk.processing.settings import ExportSettings
from rawdesk.utils.file_ops import write_atomic
from .options import (
    get_pipeline, edit_settings_options, build_edit_settings,
    export_options, pop_export_settings, fail,
)

logger = logging.getLogger(__name__)

PHOTO = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.command('settings')
@click.argument('photo', type=PHOTO)
@click.pass_context
def settings_cmd(ctx, photo):
    """Print the edit settings of PHOTO as JSON."""
    try:
        settings = get_pipeline(ctx).load_edit(photo)
    except (RawDeskError, OSError) as e:
        fail(f"Could not load settings for {photo}: {e}")
    click.echo(json.dumps(settings.to_dict(), indent=2))


@click.command('save')
@click.argument('photo', type=PHOTO)
@edit_settings_options
@click.pass_context
def save_cmd(ctx, photo, settings_file, assignments, camera_wb):
    """Save edit settings for PHOTO to its sidecar (or edited DNG)."""
    settings = build_edit_settings(settings_file, assignments, camera_wb, str(photo))
    try:
        dest = get_pipeline(ctx).save_edit(photo, settings)
    except (RawDeskError, OSError) as e:
        fail(f"Could not save {photo}: {e}")
    if not ctx.find_root().obj.get('quiet'):
        click.echo(f"✓ Saved to {dest}")


@click.command('preview')
@click.argument('photo', type=PHOTO)
@click.option('--size', '-s', type=click.IntRange(min=0), default=0,
              help='Long side in pixels, 0 for full resolution')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), required=True,
              help='JPEG file to write')
@edit_settings_options
@click.pass_context
def preview_cmd(ctx, photo, size, output, settings_file, assignments, camera_wb):
    """Render a JPEG preview of PHOTO with edit settings applied."""
    settings = build_edit_settings(settings_file, assignments, camera_wb, str(photo))
    try:
        data = get_pipeline(ctx).preview_edit(photo, size, settings)
        write_atomic(output, data)
    except (RawDeskError, OSError) as e:
        fail(f"Could not preview {photo}: {e}")
    if not ctx.find_root().obj.get('quiet'):
        click.echo(f"✓ Preview written to {output}")


@click.command('export')
@click.argument('photo', type=PHOTO)
@click.option('--output-dir', '-o', type=click.Path(exists=True, file_okay=False, path_type=Path),
              help='Directory for the exported file (default: next to PHOTO)')
@edit_settings_options
@export_options
@click.pass_context
def export_cmd(ctx, photo, output_dir, settings_file, assignments, camera_wb, **kwargs):
    """Export PHOTO as DNG or JPEG, never replacing an existing file."""
    config = ctx.find_root().obj.get('config', {})
    export = pop_export_settings(kwargs, config)
    settings = build_edit_settings(settings_file, assignments, camera_wb, str(photo))
    output_dir = output_dir or photo.parent

    pipeline = get_pipeline(ctx)
    written = []
    try:
        written.append(pipeline.export_file(photo, settings, export, output_dir))
        if export.dng and export.both:
            written.append(pipeline.export_file(photo, settings, ExportSettings(), output_dir))
    except (RawDeskError, OSError) as e:
        fail(f"Could not export {photo}: {e}")

    for path in written:
        click.echo(str(path))


@click.command('white-balance')
@click.argument('photo', type=PHOTO)
@click.argument('x', type=click.FloatRange(0, 1))
@click.argument('y', type=click.FloatRange(0, 1))
@click.pass_context
def white_balance_cmd(ctx, photo, x, y):
    """Custom white balance making the point (X, Y) of PHOTO neutral.

    X and Y are fractions of the image width and height.
    """
    try:
        wb = get_pipeline(ctx).load_white_balance(photo, (x, y))
    except (RawDeskError, OSError, ValueError) as e:
        fail(f"Could not sample white balance for {photo}: {e}")
    click.echo(json.dumps(wb.to_dict()))


@click.command('meta')
@click.argument('photo', type=PHOTO)
@click.pass_context
def meta_cmd(ctx, photo):
    """Print every metadata tag of PHOTO."""
    try:
        click.echo(get_pipeline(ctx).get_meta(photo))
    except (RawDeskError, OSError) as e:
        fail(f"Could not read metadata of {photo}: {e}")


COMMANDS = [settings_cmd, save_cmd, preview_cmd, export_cmd, white_balance_cmd, meta_cmd]
