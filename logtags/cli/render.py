"""
Rendering of pipeline results and cache statistics with rich.
"""

from typing import Iterable, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from logtags.models import (
    CountResult, GroupResult, MessageResult, Result, TaggedLine, TagValue,
    TakeResult, ViewResult,
)
from logtags.services.line_store import LineStore

ABSENT = "N/A"


def format_value(value: TagValue) -> str:
    if value is None:
        return ABSENT
    return repr(value)


def format_size(bytes_val: float) -> str:
    """Format bytes to human-readable"""
    for unit in ['B', 'KB', 'MB']:
        if bytes_val < 1024:
            return f"{bytes_val:.1f} {unit}"
        bytes_val /= 1024
    return f"{bytes_val:.1f} GB"


class ResultRenderer:
    """Print results the way the shell shows them: each line, then its tags"""

    def __init__(self, console: Console, indent: str = "  "):
        self.console = console
        self.indent = indent

    def render(self, result: Result):
        if isinstance(result, TakeResult):
            if not result.lines:
                self.console.print(f"{self.indent}[dim]no lines[/dim]")
            self.render_lines(result.lines)
            if result.exhausted:
                self.console.print(
                    f"{self.indent}[dim]end of file: {len(result.lines)} of "
                    f"{result.requested} lines[/dim]")
        elif isinstance(result, CountResult):
            self.render_count(result)
        elif isinstance(result, GroupResult):
            self.render_groups(result)
        elif isinstance(result, (ViewResult, MessageResult)):
            self.console.print(f"{self.indent}[green]{escape(result.message)}[/green]")
        self.console.print()

    def render_lines(self, lines: Iterable[TaggedLine]):
        for item in lines:
            self.console.print(f"{self.indent}{escape(item.text)}", highlight=False)
            for name, value in item.tags.items():
                label = f"[{name}]"
                self.console.print(
                    f"{self.indent}    {escape(label):<15} {escape(format_value(value))}",
                    highlight=False,
                )

    def render_count(self, result: CountResult):
        if result.tag is None:
            self.console.print(f"{self.indent}{result.total}")
            return
        table = Table(show_header=True, header_style="bold")
        table.add_column(result.tag)
        table.add_column("count", justify="right")
        for value, count in result.counts.items():
            table.add_row(escape(format_value(value)), str(count))
        table.add_row("[bold]total[/bold]", f"[bold]{result.total}[/bold]")
        self.console.print(table)

    def render_groups(self, result: GroupResult):
        for value, lines in result.groups.items():
            self.console.print(
                f"{self.indent}[bold]{escape(result.tag)} = {escape(format_value(value))}[/bold] "
                f"({len(lines)} lines)")
            for item in lines:
                self.console.print(f"{self.indent}    {escape(item.text)}", highlight=False)

    def render_stats(self, stores: List[LineStore]):
        """Debug view: intervals read and cache size per store"""
        table = Table(title="cache", show_header=True, header_style="bold")
        table.add_column("file")
        table.add_column("window")
        table.add_column("reads")
        table.add_column("lines read", justify="right")
        table.add_column("memo hit/miss", justify="right")
        table.add_column("size", justify="right")
        for store in stores:
            stats = store.stats
            table.add_row(
                escape(store.path.name),
                escape(str(store.window)),
                escape(", ".join(str(interval) for interval in stats.reads)),
                str(stats.lines_read),
                f"{stats.memo_hits}/{stats.memo_misses}",
                format_size(store.cache_size()),
            )
        self.console.print(table)
