"""
PipelineEvaluator: applies a View's operations to its materialized lines

Evaluation streams the store in batches. Each batch materializes only the
next stretch of lines and pushes just those lines through the stage chain,
so no line is tagged twice within one evaluation. Stages keep their state
(Distinct's seen values, Take's remaining budget) across batches.

Batch sizes follow a doubling read schedule: the first batch
is the first Take's count (or the configured batch size), then each batch
doubles, capped at the configured maximum. Reading stops as soon as any Take
is full or the file is exhausted.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterator, List, Optional

from logtags.config import ExplorerSettings
from logtags.context.tagging import TagEngine, compare
from logtags.exceptions import InvalidPipeline, ScriptError
from logtags.models import (
    Count, CountResult, Distinct, Filter, Group, GroupResult, Interval,
    Operation, RegexRule, Result, ScriptFilter, Tag, TaggedLine, TagValue,
    Take, TakeResult, Transform,
)
from logtags.services.view import AGGREGATES, View

logger = logging.getLogger(__name__)


def operation_name(operation: Operation) -> str:
    return type(operation).__name__.lower()


# --- stages -----------------------------------------------------------------

class Stage(ABC):
    """One operation's streaming state for a single evaluation"""

    def __init__(self, operation: Operation, engine: TagEngine):
        self.operation = operation
        self.engine = engine

    def start(self):
        """Run one-time setup before the first batch"""
        pass

    @abstractmethod
    def feed(self, items: List[TaggedLine]) -> List[TaggedLine]:
        """
        Push one batch through this stage

        Args:
            items: Lines that survived the previous stages, in index order

        Returns:
            The lines passed on to the next stage
        """
        pass

    @property
    def full(self) -> bool:
        return False


class TagStage(Stage):
    def __init__(self, operation: Tag, engine: TagEngine, store):
        super().__init__(operation, engine)
        self.store = store

    def start(self):
        rule = self.operation.rule
        if rule is not None and not isinstance(rule, RegexRule):
            self.engine.run_setup(rule.setup)

    def feed(self, items):
        name, rule = self.operation.name, self.operation.rule
        for item in items:
            if name in item.tags:
                continue
            if isinstance(rule, RegexRule):
                item.tags[name] = self.store.memoized_tag(
                    rule, item.line, lambda line: self.engine.compute(line, rule))
            else:
                item.tags[name] = self.engine.compute(item.line, rule)
        return items


class FilterStage(Stage):
    def feed(self, items):
        op = self.operation
        return [item for item in items if compare(item.tags.get(op.tag), op.comparator, op.value)]


class ScriptFilterStage(Stage):
    def start(self):
        self.engine.run_setup(self.operation.setup)

    def feed(self, items):
        op = self.operation
        return [item for item in items if self.engine.test(item.line, op.source, item.tags.get(op.tag))]


class TransformStage(Stage):
    def start(self):
        self.engine.run_setup(self.operation.setup)

    def feed(self, items):
        op = self.operation
        for item in items:
            value = item.tags.get(op.tag)
            if value is not None:
                item.tags[op.tag] = self.engine.apply_script(item.line, op.source, value)
        return items


class DistinctStage(Stage):
    def __init__(self, operation: Distinct, engine: TagEngine):
        super().__init__(operation, engine)
        self.seen = set()

    def feed(self, items):
        kept = []
        for item in items:
            value = item.tags.get(self.operation.tag)
            if value in self.seen:
                continue
            self.seen.add(value)
            kept.append(item)
        return kept


class TakeStage(Stage):
    def __init__(self, operation: Take, engine: TagEngine):
        super().__init__(operation, engine)
        self.remaining = operation.count

    def feed(self, items):
        kept = items[:self.remaining]
        self.remaining -= len(kept)
        return kept

    @property
    def full(self) -> bool:
        return self.remaining <= 0


class GroupStage(Stage):
    def __init__(self, operation: Group, engine: TagEngine):
        super().__init__(operation, engine)
        self.groups: Dict[TagValue, List[TaggedLine]] = {}

    def feed(self, items):
        for item in items:
            self.groups.setdefault(item.tags.get(self.operation.tag), []).append(item)
        return []


class CountStage(Stage):
    def __init__(self, operation: Count, engine: TagEngine):
        super().__init__(operation, engine)
        self.total = 0
        self.counts: Dict[TagValue, int] = {}

    def feed(self, items):
        self.total += len(items)
        if self.operation.tag is not None:
            for item in items:
                value = item.tags.get(self.operation.tag)
                self.counts[value] = self.counts.get(value, 0) + 1
        return []


# --- evaluator --------------------------------------------------------------

class PipelineEvaluator:
    """
    Evaluate Views against their LineStore

    Args:
        engine: Tag engine shared with the session (owns the script scope)
        settings: Batch sizing configuration
    """

    def __init__(self, engine: TagEngine, settings: Optional[ExplorerSettings] = None):
        self.engine = engine
        self.settings = settings or ExplorerSettings()

    def validate(self, operations) -> None:
        """
        Reject chains that cannot be evaluated, before any line is read

        Raises:
            InvalidTagRule: Malformed regex or script
            InvalidPipeline: Aggregate not last, or a tag used before defined
        """
        defined = set()
        last = len(operations) - 1
        for position, operation in enumerate(operations):
            name = operation_name(operation)
            if isinstance(operation, AGGREGATES) and position != last:
                raise InvalidPipeline(f"{name}() must be the last stage of a pipeline",
                                      operation=name)
            if isinstance(operation, Tag):
                self.engine.check_operation(operation)
                defined.add(operation.name)
                continue

            tag = getattr(operation, 'tag', None)
            if tag is not None and tag not in defined:
                raise InvalidPipeline(f"Tag '{tag}' is used before it is defined",
                                      operation=name, tag=tag)
            if isinstance(operation, (ScriptFilter, Transform)):
                self.engine.check_operation(operation)

    def _build(self, operation: Operation, view: View) -> Stage:
        if isinstance(operation, Tag):
            return TagStage(operation, self.engine, view.store)
        if isinstance(operation, Filter):
            return FilterStage(operation, self.engine)
        if isinstance(operation, ScriptFilter):
            return ScriptFilterStage(operation, self.engine)
        if isinstance(operation, Transform):
            return TransformStage(operation, self.engine)
        if isinstance(operation, Distinct):
            return DistinctStage(operation, self.engine)
        if isinstance(operation, Take):
            return TakeStage(operation, self.engine)
        if isinstance(operation, Group):
            return GroupStage(operation, self.engine)
        if isinstance(operation, Count):
            return CountStage(operation, self.engine)
        raise InvalidPipeline(f"Unsupported operation: {operation!r}")

    def batch_sizes(self, first_take: Optional[int]) -> Iterator[int]:
        """First batch sized to the take (or default), then doubling to the cap"""
        maximum = max(1, self.settings.max_batch_size)
        initial = first_take if first_take else self.settings.batch_size
        size = max(1, min(initial, maximum))
        while True:
            yield size
            size = min(maximum, size * 2)

    def evaluate(self, view: View) -> Result:
        """
        Evaluate a view's operation chain

        Returns:
            GroupResult or CountResult when the chain ends in an aggregate,
            otherwise a TakeResult with the surviving lines in index order

        Raises:
            InvalidTagRule / InvalidPipeline: Before any line is read
            ScriptError: From a script stage; cache growth so far is kept
            SourceUnavailable: If the backing file cannot be read
        """
        operations = view.operations
        self.validate(operations)

        start_time = time.time()
        stages = [self._build(operation, view) for operation in operations]
        for stage in stages:
            stage.start()

        takes = [op.count for op in operations if isinstance(op, Take)]
        store = view.store
        collected: List[TaggedLine] = []
        position = 0
        scanned = 0

        for size in self.batch_sizes(takes[0] if takes else None):
            if any(stage.full for stage in stages):
                break
            window = store.ensure_range(position + size)
            # The window may already reach past this batch from earlier evaluations
            batch = store.lines(Interval(position, min(position + size, window.end)))
            if not batch:
                logger.debug("%s exhausted at line %d", store.path.name, position)
                break
            position += len(batch)
            scanned += len(batch)

            items = [TaggedLine(line) for line in batch]
            for stage in stages:
                items = self._feed(stage, items)
                if not items:
                    break
            collected.extend(items)

        elapsed = time.time() - start_time
        logger.debug("Evaluated %s: scanned %d lines in %.4fs", view.describe(), scanned, elapsed)

        last = stages[-1] if stages else None
        if isinstance(last, GroupStage):
            return GroupResult(tag=last.operation.tag, groups=last.groups,
                               window=store.window, execution_time=elapsed)
        if isinstance(last, CountStage):
            return CountResult(tag=last.operation.tag, total=last.total, counts=last.counts,
                               window=store.window, execution_time=elapsed)
        return TakeResult(
            lines=collected,
            requested=min(takes) if takes else None,
            window=store.window,
            scanned_count=scanned,
            execution_time=elapsed,
        )

    def _feed(self, stage: Stage, items: List[TaggedLine]) -> List[TaggedLine]:
        try:
            return stage.feed(items)
        except ScriptError as e:
            e.operation = e.operation or operation_name(stage.operation)
            e.tag = e.tag or getattr(stage.operation, 'tag', None) or getattr(stage.operation, 'name', None)
            raise
