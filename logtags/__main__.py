"""
Entry point for python -m logtags
"""

import click
from logtags import __version__
from logtags.cli import run, shell

@click.group()
@click.version_option(version=__version__)
def cli():
    """logtags - Lazy tag-based exploration of log files"""
    pass

cli.add_command(run)
cli.add_command(shell)

if __name__ == '__main__':
    cli()
