"""
Scripting: evaluation of user-supplied Python snippets.

Scripts run against a ScriptScope, a namespace owned by the session that
survives across calls. Setup code can define helpers or lookup tables there
once, and every later per-line script can read them.

A snippet is either a single expression or a block of statements whose last
statement is an expression; the value of that final expression is the
script's result (a block without one evaluates to None):

    table = {'error': 3, 'notice': 1}
    table.get(chunk, 0)
"""

import ast
import builtins
import logging
import signal
import textwrap
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from functools import lru_cache
from types import CodeType
from typing import Any, Dict, List, Optional

from logtags.exceptions import InvalidTagRule, ScriptError, ScriptTimeout
from logtags.protocols import ScriptEvaluatorProtocol

__all__ = ['ScriptScope', 'ScriptBridge', 'CompiledScript', 'compile_script', 'time_limit']

logger = logging.getLogger(__name__)

SCRIPT_FILENAME = '<script>'


class ScriptScope:
    """Persistent namespace shared by every script of one session"""

    def __init__(self):
        self.namespace: Dict[str, Any] = {'__builtins__': builtins}

    def __contains__(self, name: str) -> bool:
        return name in self.namespace

    def __getitem__(self, name: str) -> Any:
        return self.namespace[name]

    def get(self, name: str, default: Any = None) -> Any:
        return self.namespace.get(name, default)

    def bind(self, bindings: Dict[str, Any]):
        self.namespace.update(bindings)

    def names(self) -> List[str]:
        return sorted(name for name in self.namespace if not name.startswith('__'))


@dataclass(frozen=True)
class CompiledScript:
    """Statements to run, then an optional final expression to evaluate"""
    body: Optional[CodeType]
    result: Optional[CodeType]


@lru_cache(maxsize=256)
def compile_script(source: str) -> CompiledScript:
    """
    Compile a snippet, splitting off a trailing expression as its result

    Raises:
        SyntaxError: If the source does not parse
    """
    tree = ast.parse(textwrap.dedent(source), filename=SCRIPT_FILENAME, mode='exec')

    result = None
    if tree.body and isinstance(tree.body[-1], ast.Expr):
        last = tree.body.pop()
        result = compile(ast.Expression(body=last.value), SCRIPT_FILENAME, 'eval')

    body = compile(tree, SCRIPT_FILENAME, 'exec') if tree.body else None
    return CompiledScript(body=body, result=result)


@contextmanager
def time_limit(seconds: Optional[float]):
    """
    Raise ScriptTimeout if the block runs longer than `seconds`

    Uses a SIGALRM interval timer, so it is only active on platforms that
    have one and only on the main thread; elsewhere the block is unbounded.
    """
    if (not seconds or not hasattr(signal, 'setitimer')
            or threading.current_thread() is not threading.main_thread()):
        yield
        return

    def _expired(signum, frame):
        raise ScriptTimeout(f"Script exceeded {seconds}s time limit")

    previous = signal.signal(signal.SIGALRM, _expired)
    signal.setitimer(signal.ITIMER_REAL, seconds)
    try:
        yield
    finally:
        signal.setitimer(signal.ITIMER_REAL, 0)
        signal.signal(signal.SIGALRM, previous)


class ScriptBridge(ScriptEvaluatorProtocol):
    """
    Evaluate Python snippets against a persistent ScriptScope

    Args:
        timeout: Upper bound in seconds for a single evaluation (0 disables)
    """

    def __init__(self, timeout: float = 0.0):
        self.timeout = timeout
        self.evaluations = 0

    def _compile(self, source: str) -> CompiledScript:
        try:
            return compile_script(source)
        except SyntaxError as e:
            raise InvalidTagRule(
                f"Invalid script syntax: {e.msg} (line {e.lineno})",
                value=source,
            ) from e

    def check(self, source: str) -> None:
        self._compile(source)

    def evaluate(self, source: str, bindings: Dict[str, Any], scope: ScriptScope) -> Any:
        compiled = self._compile(source)
        scope.bind(bindings)
        self.evaluations += 1

        try:
            with time_limit(self.timeout):
                if compiled.body is not None:
                    exec(compiled.body, scope.namespace)
                if compiled.result is not None:
                    return eval(compiled.result, scope.namespace)
                return None
        except ScriptError:
            raise
        except Exception as e:
            raise ScriptError(f"Script raised {type(e).__name__}: {e}", value=source) from e

    def execute(self, source: str, scope: ScriptScope) -> None:
        logger.debug("Running setup script (%d chars)", len(source))
        self.evaluate(source, {}, scope)
