"""
CLI commands for logtags.
"""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from logtags.config import load_settings
from logtags.services import Session
from logtags.cli.interactive import InteractiveShell


def configure_logging(level: str, console: Console):
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@click.command()
@click.argument('transcript', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--debug', '-d', is_flag=True, help='Print cache statistics after each pipeline')
@click.option('--keep-going', is_flag=True, help='Continue after a failing pipeline')
def run(transcript, debug, keep_going):
    """
    Run the pipelines in a transcript file.

    Example:
        logtags run examples/apache.tags
    """
    console = Console()
    settings = load_settings(debug=debug or None)
    configure_logging(settings.log_level, console)

    session = Session(settings, base_dir=transcript.parent)
    interactive = InteractiveShell(session, console, debug=settings.debug)
    try:
        ok = interactive.run_transcript(transcript, stop_on_error=not keep_going)
    finally:
        session.close()
    if not ok:
        sys.exit(1)


@click.command()
@click.option('--file', '-f', 'transcript', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help='Run the pipelines in this file before the interactive prompt')
@click.option('--debug', '-d', is_flag=True, help='Print cache statistics after each pipeline')
def shell(transcript, debug):
    """
    Explore log files interactively.

    Example:
        logtags shell -f examples/apache.tags
    """
    console = Console()
    settings = load_settings(debug=debug or None)
    configure_logging(settings.log_level, console)

    session = Session(settings, base_dir=transcript.parent if transcript else None)
    interactive = InteractiveShell(session, console, debug=settings.debug)
    try:
        if transcript:
            interactive.run_transcript(transcript, stop_on_error=False)
        interactive.loop()
    finally:
        session.close()
