"""
CLI layer - click commands, interactive shell and result rendering.
"""

from logtags.cli.commands import run, shell
from logtags.cli.interactive import InteractiveShell
from logtags.cli.render import ResultRenderer

__all__ = ['run', 'shell', 'InteractiveShell', 'ResultRenderer']
