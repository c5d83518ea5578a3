"""
Context layer - file reading, script evaluation, tagging and parsing.
"""

from logtags.context.reading import LineReader
from logtags.context.scripting import ScriptBridge, ScriptScope
from logtags.context.tagging import TagEngine, compare
from logtags.context.parsing import PipelineBuffer, parse_pipeline

__all__ = [
    'LineReader',
    'ScriptBridge',
    'ScriptScope',
    'TagEngine',
    'compare',
    'PipelineBuffer',
    'parse_pipeline',
]
