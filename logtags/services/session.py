"""
Session: the registry binding names to Views

A session is created at start, owns the persistent script scope and the tag
engine, and lives until the process ends. Names can be rebound at any time.

Executing a parsed pipeline happens in two phases: every stage is resolved
into a View first (unknown names and malformed rules are rejected here,
before a single line is read), then the final View is evaluated if the
pipeline ends in take(), count() or group().
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

from logtags.config import ExplorerSettings
from logtags.context.parsing import Application, Symbol, parse_pipeline
from logtags.context.scripting import ScriptBridge, ScriptScope
from logtags.context.tagging import TagEngine
from logtags.exceptions import InvalidPipeline, LogTagsError, PipelineSyntaxError, UnknownName
from logtags.models import (
    Comparator, Count, Distinct, Filter, Group, MessageResult, RegexRule,
    Result, ScriptFilter, ScriptRule, Tag, Take, Transform, ViewResult,
)
from logtags.services.line_store import LineStore
from logtags.services.pipeline import PipelineEvaluator
from logtags.services.view import View

logger = logging.getLogger(__name__)

TERMINALS = (Take, Count, Group)
# Stages that refine the tag defined just before them
TAG_REFINEMENTS = ('regex', 'transform')


class Session:
    """
    Process-wide registry of named views

    Args:
        settings: Explorer settings (batching, script timeout, memoization)
        base_dir: Directory relative load() paths are resolved against
    """

    def __init__(self, settings: Optional[ExplorerSettings] = None,
                 base_dir: Optional[Union[str, Path]] = None):
        self.settings = settings or ExplorerSettings()
        self.base_dir = Path(base_dir) if base_dir else None
        self.scope = ScriptScope()
        self.bridge = ScriptBridge(timeout=self.settings.script_timeout)
        self.engine = TagEngine(self.bridge, self.scope)
        self.evaluator = PipelineEvaluator(self.engine, self.settings)
        self._names: Dict[str, View] = {}
        self._stores: List[LineStore] = []

    # --- registry ---------------------------------------------------------

    def bind(self, name: str, view: View) -> View:
        named = view.named(name)
        self._names[name] = named
        logger.debug("Bound '%s to %s", name, named.describe())
        return named

    def resolve(self, name: str) -> View:
        try:
            return self._names[name]
        except KeyError:
            raise UnknownName(f"Unknown name '{name}", value=name) from None

    def list_names(self) -> List[str]:
        return sorted(self._names)

    def stores(self) -> List[LineStore]:
        return list(self._stores)

    # --- commands ---------------------------------------------------------

    def open(self, path: Union[str, Path]) -> LineStore:
        """Open a store over `path` without registering it"""
        path = Path(path).expanduser()
        if self.base_dir is not None and not path.is_absolute():
            path = self.base_dir / path
        return LineStore(path, memoize_tags=self.settings.memoize_tags)

    def adopt(self, store: LineStore):
        self._stores.append(store)
        logger.info("Loaded %s", store.path)

    def load(self, name: str, path: Union[str, Path]) -> View:
        """
        Bind `name` to a new root view over `path`

        Raises:
            SourceUnavailable: The file cannot be opened; nothing is bound
        """
        store = self.open(path)
        self.adopt(store)
        return self.bind(name, View.root(store))

    def run_script(self, source: str) -> None:
        """Run setup code in the persistent scope"""
        self.bridge.check(source)
        self.bridge.execute(source, self.scope)

    def evaluate(self, view: View) -> Result:
        return self.evaluator.evaluate(view)

    def run(self, text: str) -> Result:
        """Parse and execute one complete pipeline"""
        return self.execute(parse_pipeline(text))

    def execute(self, applications: Sequence[Application]) -> Result:
        """
        Resolve a parsed pipeline into a View and evaluate it when it ends in
        take(), count() or group()

        Raises:
            PipelineSyntaxError: Unknown function or wrong arguments
            UnknownName: A referenced name is not bound
        """
        if not applications:
            raise PipelineSyntaxError("Empty pipeline")
        first, rest = applications[0], list(applications[1:])
        if first.piped:
            raise PipelineSyntaxError("Pipeline must start with a root stage", value=str(first))

        if first.function == 'script':
            source = self._arguments(first, (str,))[0]
            if rest:
                raise PipelineSyntaxError("script() cannot be piped", value=str(rest[0]))
            self.run_script(source)
            return MessageResult("script loaded")

        builder = _PipelineBuilder(self)
        if first.function == 'load':
            name, path = self._arguments(first, (Symbol, str))
            builder.open(self.open(path), name.name)
        else:
            if not first.arguments or not isinstance(first.arguments[0], Symbol):
                raise PipelineSyntaxError(
                    f"{first.function}() needs a source name as its first argument",
                    value=str(first),
                )
            builder.start(self.resolve(first.arguments[0].name))

        # Names are bound only once the whole pipeline is known to be valid
        try:
            if first.function != 'load':
                builder.apply(Application(first.function, first.arguments[1:], True, first.position))
            for application in rest:
                builder.apply(application)
            view = builder.finish()
            self.evaluator.validate(view.operations)
        except LogTagsError:
            builder.abandon()
            raise
        builder.commit()

        if first.function == 'load' and not rest:
            return MessageResult(f"file loaded: '{first.arguments[0].name} {view.store.path}")
        if view.operations and isinstance(view.operations[-1], TERMINALS):
            return self.evaluate(view)
        return ViewResult(
            names=tuple(builder.bound),
            operations=view.operations,
            message=f"defined: {view.describe()}",
        )

    def _arguments(self, application: Application, shape) -> list:
        arguments = application.arguments
        if len(arguments) != len(shape) or not all(
                isinstance(argument, kind) for argument, kind in zip(arguments, shape)):
            expected = ', '.join(kind.__name__.lower() for kind in shape)
            raise PipelineSyntaxError(
                f"{application.function}() expects ({expected})",
                operation=application.function,
                value=str(application),
            )
        return list(arguments)

    def close(self):
        for store in self._stores:
            store.close()


class _PipelineBuilder:
    """Folds piped applications into a View, collecting the names to bind"""

    def __init__(self, session: Session):
        self.session = session
        self.view: Optional[View] = None
        self.bindings: List[Tuple[str, View]] = []
        self.store: Optional[LineStore] = None
        self._pending_tag: Optional[str] = None

    @property
    def bound(self) -> List[str]:
        return [name for name, _ in self.bindings]

    def start(self, view: View):
        self.view = view

    def open(self, store: LineStore, name: str):
        self.store = store
        self.view = View.root(store)
        self._bind(name)

    def _bind(self, name: str):
        self.view = self.view.named(name)
        self.bindings.append((name, self.view))

    def _flush(self):
        if self._pending_tag is not None:
            self._bind(self._pending_tag)
            self._pending_tag = None

    def finish(self) -> View:
        self._flush()
        return self.view

    def commit(self):
        if self.store is not None:
            self.session.adopt(self.store)
        for name, view in self.bindings:
            self.session.bind(name, view)

    def abandon(self):
        if self.store is not None:
            self.store.close()

    def apply(self, application: Application):
        function = application.function
        if function not in TAG_REFINEMENTS:
            self._flush()

        handler = getattr(self, f"_apply_{function}", None)
        if handler is None:
            raise PipelineSyntaxError(f"Unknown function {function}()", operation=function,
                                      value=str(application))
        handler(application)

    def _syntax(self, application: Application, usage: str) -> PipelineSyntaxError:
        return PipelineSyntaxError(f"Usage: {usage}", operation=application.function,
                                   value=str(application))

    def _split_tag(self, arguments):
        """Leading symbol names the tag; otherwise the view's focus tag is used"""
        if arguments and isinstance(arguments[0], Symbol):
            return arguments[0].name, list(arguments[1:])
        tag = self.view.focus_tag
        if tag is None:
            raise InvalidPipeline("No tag to operate on; name one explicitly")
        return tag, list(arguments)

    # --- stage handlers -----------------------------------------------------

    def _apply_tag(self, application):
        args = application.arguments
        usage = "tag('name[, \"script\"[, \"setup\"]])"
        if not args or not isinstance(args[0], Symbol) or len(args) > 3:
            raise self._syntax(application, usage)
        if not all(isinstance(arg, str) for arg in args[1:]):
            raise self._syntax(application, usage)
        rule = ScriptRule(args[1], args[2] if len(args) > 2 else None) if len(args) > 1 else None
        operation = Tag(args[0].name, rule)
        self.session.engine.check_operation(operation)
        self.view = self.view.derive(operation)
        self._pending_tag = operation.name

    def _apply_regex(self, application):
        args = application.arguments
        if not args or not isinstance(args[0], str) or len(args) > 2 or (
                len(args) == 2 and not isinstance(args[1], int)):
            raise self._syntax(application, "regex(\"pattern\"[, group])")
        last = self.view.operations[-1] if self.view.operations else None
        if not isinstance(last, Tag):
            raise PipelineSyntaxError("regex() must directly follow tag()", operation='regex',
                                      value=str(application))
        operation = Tag(last.name, RegexRule(args[0], args[1] if len(args) == 2 else 1))
        self.session.engine.check_operation(operation)
        self.view = self.view.replace_last(operation)
        if self._pending_tag is None:
            # regex('level, "...") refines an already bound tag view
            self._pending_tag = last.name

    def _apply_transform(self, application):
        tag, args = self._split_tag(application.arguments)
        if not 1 <= len(args) <= 2 or not all(isinstance(arg, str) for arg in args):
            raise self._syntax(application, "transform(['tag, ]\"script\"[, \"setup\"])")
        operation = Transform(tag, args[0], args[1] if len(args) == 2 else None)
        self.session.engine.check_operation(operation)
        if self._pending_tag is None and self.view.name == tag:
            self._pending_tag = tag
        self.view = self.view.derive(operation)

    def _apply_filter(self, application):
        tag, args = self._split_tag(application.arguments)
        if len(args) == 2 and isinstance(args[0], Comparator) and isinstance(args[1], (str, int)):
            operation = Filter(tag, args[0], str(args[1]))
        elif 1 <= len(args) <= 2 and all(isinstance(arg, str) for arg in args):
            operation = ScriptFilter(tag, args[0], args[1] if len(args) == 2 else None)
            self.session.engine.check_operation(operation)
        else:
            raise self._syntax(application, "filter(['tag, ]OP, \"value\") or filter(['tag, ]\"script\")")
        self.view = self.view.derive(operation)

    def _apply_distinct(self, application):
        tag, args = self._split_tag(application.arguments)
        if args:
            raise self._syntax(application, "distinct(['tag])")
        self.view = self.view.derive(Distinct(tag))

    def _apply_group(self, application):
        tag, args = self._split_tag(application.arguments)
        if args:
            raise self._syntax(application, "group(['tag])")
        self.view = self.view.derive(Group(tag))

    def _apply_count(self, application):
        args = application.arguments
        if len(args) > 1 or (args and not isinstance(args[0], Symbol)):
            raise self._syntax(application, "count(['tag])")
        self.view = self.view.derive(Count(args[0].name if args else None))

    def _apply_take(self, application):
        args = application.arguments
        if len(args) != 1 or not isinstance(args[0], int):
            raise self._syntax(application, "take(n)")
        self.view = self.view.derive(Take(args[0]))

    def _apply_name(self, application):
        args = application.arguments
        if len(args) != 1 or not isinstance(args[0], Symbol):
            raise self._syntax(application, "name('alias)")
        self._bind(args[0].name)

    def _apply_load(self, application):
        raise PipelineSyntaxError("load() must start a pipeline", operation='load',
                                  value=str(application))

    def _apply_script(self, application):
        raise PipelineSyntaxError("script() must start a pipeline", operation='script',
                                  value=str(application))
