"""
View: a named, derived log

A View is a LineStore plus an ordered chain of operations. Views are
immutable; deriving one appends an operation and returns a new View that
shares the same store (and therefore the same raw-line cache). Views hold no
results of their own: every evaluation recomputes over the store's window.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple

from logtags.exceptions import InvalidPipeline
from logtags.models import Count, Group, Operation, Tag, Transform
from logtags.services.line_store import LineStore

AGGREGATES = (Count, Group)


@dataclass(frozen=True)
class View:
    store: LineStore
    operations: Tuple[Operation, ...] = ()
    name: Optional[str] = None

    @classmethod
    def root(cls, store: LineStore, name: Optional[str] = None) -> 'View':
        return cls(store=store, operations=(), name=name)

    @property
    def is_root(self) -> bool:
        return not self.operations

    @property
    def is_aggregate(self) -> bool:
        return bool(self.operations) and isinstance(self.operations[-1], AGGREGATES)

    @property
    def focus_tag(self) -> Optional[str]:
        """Tag produced by the most recent Tag or Transform operation"""
        for operation in reversed(self.operations):
            if isinstance(operation, Tag):
                return operation.name
            if isinstance(operation, Transform):
                return operation.tag
        return None

    def tag_names(self) -> Tuple[str, ...]:
        """Names of all tags this view computes, in first-definition order"""
        names = []
        for operation in self.operations:
            if isinstance(operation, Tag) and operation.name not in names:
                names.append(operation.name)
        return tuple(names)

    def derive(self, operation: Operation) -> 'View':
        """New view with `operation` appended; the name is not inherited"""
        if self.is_aggregate:
            raise InvalidPipeline(
                f"Cannot apply {type(operation).__name__.lower()} after "
                f"{type(self.operations[-1]).__name__.lower()}",
                operation=type(operation).__name__.lower(),
            )
        return View(store=self.store, operations=self.operations + (operation,))

    def replace_last(self, operation: Operation) -> 'View':
        """New view whose final operation is swapped for `operation`"""
        if not self.operations:
            raise InvalidPipeline("View has no operation to replace")
        return View(store=self.store, operations=self.operations[:-1] + (operation,))

    def named(self, name: str) -> 'View':
        return replace(self, name=name)

    def describe(self) -> str:
        steps = [self.store.path.name] + [_describe(op) for op in self.operations]
        return ' | '.join(steps)


def _describe(operation: Operation) -> str:
    fields = ', '.join(
        repr(value.value) if hasattr(value, 'value') and not isinstance(value, str) else repr(value)
        for value in vars(operation).values()
        if value is not None
    )
    return f"{type(operation).__name__.lower()}({fields})"
