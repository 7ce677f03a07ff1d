"""
Shared CLI options and helpers for rawdesk commands
"""

import json
import sys
from typing import Any, Dict, Optional, Tuple
import logging

import click

from rawdesk.config import get_config_value
from rawdesk.io.exiftool_server import shutdown_server
from rawdesk.processing.settings import (
    CAMERA_MATCHING, EditSettings, ExportSettings, FitMode, DimUnit, DensityUnit,
)

logger = logging.getLogger(__name__)


def get_pipeline(ctx: click.Context):
    """The invocation's edit pipeline, starting ExifTool on first use."""
    from rawdesk.app import create_pipeline

    root = ctx.find_root()
    obj = root.obj
    if obj.get('pipeline') is None:
        obj['pipeline'] = create_pipeline(obj.get('config', {}))
        root.call_on_close(shutdown_server)
    return obj['pipeline']


def edit_settings_options(func):
    """--settings, --set and --camera-wb"""
    func = click.option('--camera-wb', is_flag=True,
                        help='Use the white balance recorded by the camera')(func)
    func = click.option('--set', 'assignments', multiple=True, metavar='KEY=VALUE',
                        help='Set one edit setting (repeatable)')(func)
    func = click.option('--settings', 'settings_file', type=click.Path(exists=True, dir_okay=False),
                        help='JSON file with edit settings')(func)
    return func


def parse_assignments(assignments: Tuple[str, ...]) -> Dict[str, str]:
    values = {}
    for item in assignments:
        key, sep, value = item.partition('=')
        if not sep or not key.strip():
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint='--set')
        values[key.strip().replace('-', '_')] = value
    return values


def build_edit_settings(settings_file: Optional[str], assignments: Tuple[str, ...],
                        camera_wb: bool, filename: str = "") -> EditSettings:
    """Edit settings from a JSON file overlaid with --set values. Unknown keys are ignored."""
    data: Dict[str, Any] = {}
    if settings_file:
        with open(settings_file, 'r') as f:
            loaded = json.load(f)
        if not isinstance(loaded, dict):
            raise click.BadParameter("settings file must hold a JSON object", param_hint='--settings')
        data.update(loaded)
    data.update(parse_assignments(assignments))
    if camera_wb:
        data['white_balance'] = CAMERA_MATCHING
    data['filename'] = filename

    try:
        return EditSettings.from_dict(data)
    except (TypeError, ValueError) as e:
        raise click.BadParameter(str(e), param_hint='--settings/--set')


def export_options(func):
    """Options mirroring ExportSettings"""
    options = [
        click.option('--dng/--jpeg', default=False, help='Export DNG or JPEG (default JPEG)'),
        click.option('--preview', type=click.Choice(['p0', 'p1', 'p2']),
                     help='DNG embedded preview: none, medium or full size'),
        click.option('--lossy', is_flag=True, help='Lossy DNG compression'),
        click.option('--embed', is_flag=True, help='Embed the original RAW in the DNG'),
        click.option('--both', is_flag=True, help='Also export a JPEG after a DNG'),
        click.option('--resample', is_flag=True, help='Resample the exported JPEG'),
        click.option('--fit', type=click.Choice([m.value for m in FitMode]), default=FitMode.DIMS.value,
                     help='Resample by long/short side, width/height or megapixels'),
        click.option('--long', type=float, default=0.0, help='Long side (dims)'),
        click.option('--short', type=float, default=0.0, help='Short side (dims)'),
        click.option('--width', type=float, default=0.0, help='Width (size)'),
        click.option('--height', type=float, default=0.0, help='Height (size)'),
        click.option('--dim-unit', type=click.Choice([u.value for u in DimUnit]), default=DimUnit.PX.value),
        click.option('--density', type=int, default=300, help='Output density'),
        click.option('--den-unit', type=click.Choice([u.value for u in DensityUnit]),
                     default=DensityUnit.PPI.value),
        click.option('--mpixels', type=float, default=0.0, help='Megapixels (mpix)'),
        click.option('--quality', type=click.IntRange(1, 100), help='JPEG quality'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


EXPORT_OPTION_NAMES = (
    'dng', 'preview', 'lossy', 'embed', 'both', 'resample', 'fit', 'long', 'short',
    'width', 'height', 'dim_unit', 'density', 'den_unit', 'mpixels', 'quality',
)


def pop_export_settings(kwargs: Dict[str, Any], config: Dict[str, Any]) -> ExportSettings:
    """Remove export options from a command's kwargs and build ExportSettings."""
    values = {name: kwargs.pop(name) for name in EXPORT_OPTION_NAMES if name in kwargs}
    if values.get('quality') is None:
        values['quality'] = get_config_value(config, 'export.jpeg_quality', 90)
    return ExportSettings.from_dict(values)


def fail(message: str, code: int = 1):
    click.echo(f"❌ {message}", err=True)
    sys.exit(code)
