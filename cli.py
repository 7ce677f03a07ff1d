#!/usr/bin/env python3
"""
rawdesk Command Line Interface

Main CLI entry point for editing and exporting RAW photos through Adobe DNG
Converter and ExifTool.
"""

import click
import logging
from typing import Optional

from rawdesk import __version__
from rawdesk.config import load_config, get_config_value
from rawdesk.cli import EDIT_COMMANDS, BATCH_COMMANDS
from rawdesk.utils.logging import setup_console_logging

logger = logging.getLogger(__name__)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress non-error output')
@click.pass_context
def main(ctx, config: Optional[str] = None, verbose: bool = False, quiet: bool = False):
    """
    rawdesk - non-destructive RAW editing and export

    Edits are stored as Camera Raw settings in XMP sidecars (or inside
    edited DNGs); previews and exports are rendered by Adobe DNG Converter.
    """
    # Ensure context object exists
    if ctx.obj is None:
        ctx.obj = {}

    ctx.obj['config'] = load_config(config)
    cfg = ctx.obj['config']

    # Configure logging level
    if verbose:
        level = 'DEBUG'
    elif quiet:
        level = 'ERROR'
    else:
        level = get_config_value(cfg, 'logging.level', 'INFO')
    setup_console_logging(
        level=level,
        log_file=get_config_value(cfg, 'logging.file'),
        fmt=get_config_value(cfg, 'logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )

    # Store CLI options in context
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet


for command in EDIT_COMMANDS + BATCH_COMMANDS:
    main.add_command(command)


@main.command()
def version():
    """Show rawdesk version information."""
    click.echo(f"rawdesk v{__version__}")


if __name__ == '__main__':
    main()
