"""
Error taxonomy for logtags.

Every error carries enough context (operation, tag, offending value) for the
caller to report it precisely. Only SourceExhausted is an expected boundary
condition; the pipeline evaluator treats it as end-of-file.
"""

from typing import Any, Optional


class LogTagsError(Exception):
    """Base class for all logtags errors"""

    def __init__(self, message: str, operation: Optional[str] = None,
                 tag: Optional[str] = None, value: Any = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.tag = tag
        self.value = value

    def __str__(self):
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.tag:
            context.append(f"tag={self.tag}")
        if self.value is not None:
            context.append(f"value={self.value!r}")
        if context:
            return f"{self.message} ({', '.join(context)})"
        return self.message


class SourceUnavailable(LogTagsError):
    """Backing file missing or unreadable"""


class SourceExhausted(LogTagsError):
    """Backing file has no more lines to satisfy a growing request"""


class InvalidTagRule(LogTagsError):
    """Malformed regex or script syntax, detected before any line is processed"""


class ScriptError(LogTagsError):
    """A script failed while being evaluated"""

    def __init__(self, message: str, operation: Optional[str] = None,
                 tag: Optional[str] = None, value: Any = None,
                 line_index: Optional[int] = None):
        super().__init__(message, operation=operation, tag=tag, value=value)
        self.line_index = line_index

    def __str__(self):
        text = super().__str__()
        if self.line_index is not None:
            return f"{text} at line {self.line_index}"
        return text


class ScriptTimeout(ScriptError):
    """A script ran longer than the configured time bound"""


class UnknownName(LogTagsError):
    """A pipeline referenced a name that is not bound in the session"""


class PipelineSyntaxError(LogTagsError):
    """Pipeline text could not be parsed, or stages were given out of order"""


class IncompleteExpression(PipelineSyntaxError):
    """Pipeline text ended inside a string or an argument list"""


class InvalidPipeline(LogTagsError):
    """An operation chain that cannot be evaluated"""
