"""
Interactive shell and transcript runner.

Transcripts are plain text files in the shell's own notation:

    > load('apache, "apache.log")

    > tag('apache, 'level)
    | regex("\\[(error|notice)\\]")
    | take(5)

Lines starting with "> " begin a pipeline, lines starting with "| " extend
it, and a blank line runs it. Any other line outside a pipeline is treated
as commentary and skipped. A string or argument list left open continues on
the next line regardless of prefix.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.prompt import Prompt

from logtags.context.parsing import CursorState, PipelineBuffer
from logtags.exceptions import LogTagsError
from logtags.services.session import Session
from logtags.cli.render import ResultRenderer

ROOT_PREFIX = "> "
PIPE_PREFIX = "| "

PROMPTS = {
    CursorState.ROOT: ">",
    CursorState.PIPELINED: "|",
    CursorState.MULTILINE: ".",
}


class PipelinePrompt(Prompt):
    prompt_suffix = " "


class InteractiveShell:
    """
    Feed input lines to a session and render what comes back

    Args:
        session: Session to execute pipelines in
        console: rich console for output
        debug: Print cache statistics after every pipeline
    """

    def __init__(self, session: Session, console: Optional[Console] = None, debug: bool = False):
        self.session = session
        self.console = console or Console()
        self.renderer = ResultRenderer(self.console)
        self.buffer = PipelineBuffer()
        self.debug = debug

    def report(self, error: LogTagsError):
        self.console.print(f"[bold red]{type(error).__name__}:[/bold red] {escape(str(error))}")

    def execute(self) -> bool:
        """Run the buffered pipeline; False when it failed"""
        applications = self.buffer.drain()
        if not applications:
            return True
        self.console.print()
        try:
            result = self.session.execute(applications)
        except LogTagsError as e:
            self.report(e)
            return False
        self.renderer.render(result)
        if self.debug:
            self.renderer.render_stats(self.session.stores())
        return True

    def feed(self, segment: str) -> CursorState:
        """Add one line of input; raises on syntax errors"""
        return self.buffer.add_segment(segment)

    def run_transcript(self, path: Path, stop_on_error: bool = True) -> bool:
        """
        Replay a transcript file, echoing its lines

        Returns:
            True when every pipeline ran successfully
        """
        ok = True
        with open(path, 'r', encoding='utf-8') as f:
            for raw in f:
                segment = raw.rstrip('\n')
                if segment:
                    self.console.print(escape(segment), highlight=False)

                state = self.buffer.state
                try:
                    if state is CursorState.MULTILINE:
                        self.feed(segment)
                    elif segment.startswith(ROOT_PREFIX) and state is CursorState.ROOT:
                        self.feed(segment[len(ROOT_PREFIX):])
                    elif segment.startswith(PIPE_PREFIX) and state is CursorState.PIPELINED:
                        self.feed(segment)
                    elif not segment.strip() and state is CursorState.PIPELINED:
                        ok = self.execute() and ok
                except LogTagsError as e:
                    self.report(e)
                    ok = False

                if not ok and stop_on_error:
                    return False

        if self.buffer.state is CursorState.PIPELINED:
            ok = self.execute() and ok
        return ok

    def loop(self):
        """Read pipelines from the terminal until EOF or Ctrl-C"""
        self.console.print("[dim]Blank line runs the pipeline; Ctrl-D exits.[/dim]")
        while True:
            try:
                segment = PipelinePrompt.ask(PROMPTS[self.buffer.state], console=self.console,
                                             default="", show_default=False)
            except (EOFError, KeyboardInterrupt):
                self.console.print()
                if self.buffer.state is CursorState.PIPELINED:
                    self.execute()
                break

            try:
                if not segment.strip() and self.buffer.state is CursorState.PIPELINED:
                    self.execute()
                else:
                    self.feed(segment)
            except LogTagsError as e:
                self.report(e)
                self.buffer.drain()
