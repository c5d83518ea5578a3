"""
Tagging: per-line tag computation and tag value comparison.

Regex rules use the `regex` library and yield a capture group; script rules
go through the ScriptBridge with the line bound as `line` and the current
value bound as `chunk`. Script results are coerced into the closed TagValue
variant (None, str, int, float).
"""

import logging
from typing import Any, Dict, Optional, Union

import regex

from logtags.context.scripting import ScriptBridge, ScriptScope
from logtags.exceptions import InvalidTagRule, ScriptError
from logtags.models import (
    Comparator, Line, Operation, RegexRule, ScriptFilter, ScriptRule, Tag,
    TagRule, TagValue, Transform,
)

__all__ = ['TagEngine', 'coerce_value', 'as_number', 'compare']

logger = logging.getLogger(__name__)

# Plain decimal numbers only; "nan", "inf" and hex stay strings
NUMBER_PATTERN = regex.compile(r'[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?')

# Names scripts see for the line text and the value under test
LINE_BINDING = 'line'
VALUE_BINDING = 'chunk'
INDEX_BINDING = 'index'

_MISSING = object()


def coerce_value(value: Any) -> TagValue:
    """Fold an arbitrary script result into the TagValue variant"""
    if value is None:
        return None
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (str, int, float)):
        return value
    return str(value)


def as_number(value: TagValue) -> Optional[Union[int, float]]:
    """Numeric reading of a tag value, or None when it is not a number"""
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if NUMBER_PATTERN.fullmatch(text):
            try:
                return int(text)
            except ValueError:
                return float(text)
    return None


def compare(left: TagValue, comparator: Comparator, right: TagValue) -> bool:
    """
    Compare a tag value against a filter operand

    Ordering comparators are numeric when both sides parse as numbers and
    lexicographic otherwise, so "9" < "10" holds while "a" < "b" still works.
    Equality is numeric only when the tag value already is a number (a script
    result); two strings are equal only when they are identical. An absent
    tag value never matches.
    """
    if left is None or right is None:
        return False

    left_number = as_number(left)
    right_number = as_number(right)
    numeric = left_number is not None and right_number is not None
    if not comparator.is_ordering:
        numeric = numeric and isinstance(left, (int, float))

    if numeric:
        a, b = left_number, right_number
    else:
        a, b = str(left), str(right)

    if comparator is Comparator.EQUAL:
        return a == b
    if comparator is Comparator.NOT_EQUAL:
        return a != b
    if comparator is Comparator.LESS_THAN:
        return a < b
    if comparator is Comparator.GREATER_THAN:
        return a > b
    if comparator is Comparator.LESS_THAN_EQUAL:
        return a <= b
    return a >= b


class TagEngine:
    """
    Compute tag values for lines

    Stateless per call apart from the ScriptScope, which persists so setup
    code run before a stage is visible to its per-line scripts.
    """

    def __init__(self, bridge: ScriptBridge, scope: ScriptScope):
        self.bridge = bridge
        self.scope = scope
        self._patterns: Dict[str, Any] = {}

    # --- rule construction -----------------------------------------------

    def compile_pattern(self, rule: RegexRule):
        """
        Compile (and cache) a regex rule's pattern

        Raises:
            InvalidTagRule: On bad syntax or a capture group the pattern lacks
        """
        compiled = self._patterns.get(rule.pattern)
        if compiled is None:
            try:
                compiled = regex.compile(rule.pattern)
            except regex.error as e:
                raise InvalidTagRule(f"Invalid regex: {e}", operation='regex',
                                     value=rule.pattern) from e
            self._patterns[rule.pattern] = compiled

        if rule.group < 0 or rule.group > compiled.groups:
            raise InvalidTagRule(
                f"Regex has {compiled.groups} capture group(s), group {rule.group} requested",
                operation='regex',
                value=rule.pattern,
            )
        return compiled

    def check_operation(self, operation: Operation):
        """Reject malformed regexes and scripts before any line is processed"""
        try:
            if isinstance(operation, Tag) and isinstance(operation.rule, RegexRule):
                self.compile_pattern(operation.rule)
            elif isinstance(operation, Tag) and isinstance(operation.rule, ScriptRule):
                self._check_script(operation.rule.source, operation.rule.setup)
            elif isinstance(operation, (ScriptFilter, Transform)):
                self._check_script(operation.source, operation.setup)
        except InvalidTagRule as e:
            e.operation = e.operation or type(operation).__name__.lower()
            e.tag = e.tag or getattr(operation, 'name', None) or getattr(operation, 'tag', None)
            raise

    def _check_script(self, source: str, setup: Optional[str]):
        self.bridge.check(source)
        if setup:
            self.bridge.check(setup)

    def run_setup(self, setup: Optional[str]):
        """Run a stage's one-time setup code in the persistent scope"""
        if setup:
            self.bridge.execute(setup, self.scope)

    # --- per-line evaluation ---------------------------------------------

    def apply_regex(self, line: Line, compiled, group: int = 1) -> TagValue:
        """Capture group value when the pattern matches, else None"""
        match = compiled.search(line.text)
        if match is None:
            return None
        return match.group(group)

    def apply_script(self, line: Line, source: str, value: Any = _MISSING) -> TagValue:
        """
        Evaluate a script for one line

        Args:
            line: The raw line, bound as `line` (and `index`)
            source: Script source
            value: Existing tag value bound as `chunk`; the line text when omitted

        Raises:
            ScriptError: Annotated with the failing line's index
        """
        chunk = line.text if value is _MISSING else value
        bindings = {LINE_BINDING: line.text, VALUE_BINDING: chunk, INDEX_BINDING: line.index}
        try:
            return coerce_value(self.bridge.evaluate(source, bindings, self.scope))
        except ScriptError as e:
            e.line_index = line.index
            raise

    def compute(self, line: Line, rule: Optional[TagRule]) -> TagValue:
        """Tag value of `line` under `rule` (whole text when there is no rule)"""
        if rule is None:
            return line.text
        if isinstance(rule, RegexRule):
            return self.apply_regex(line, self.compile_pattern(rule), rule.group)
        return self.apply_script(line, rule.source)

    def test(self, line: Line, source: str, value: TagValue) -> bool:
        """Script predicate; absent values never pass"""
        if value is None:
            return False
        bindings = {LINE_BINDING: line.text, VALUE_BINDING: value, INDEX_BINDING: line.index}
        try:
            return bool(self.bridge.evaluate(source, bindings, self.scope))
        except ScriptError as e:
            e.line_index = line.index
            raise
