"""
logtags - Lazy, tag-based exploration of large log files

Files are read on demand: only the stretch of lines a pipeline needs is
pulled into memory, and the cache only ever grows.

Layers:
- Models: Pure data structures (Line, Interval, operations, results)
- Protocols: Interface contracts (LineReaderProtocol, ScriptEvaluatorProtocol)
- Context: Domain implementations (reading, scripting, tagging, parsing)
- Services: Orchestration (LineStore, View, PipelineEvaluator, Session)
- CLI: User interface (run, shell commands)
"""

__version__ = "0.1.0"

from logtags import models, protocols
from logtags.exceptions import LogTagsError
from logtags.services import LineStore, PipelineEvaluator, Session, View

__all__ = [
    'models',
    'protocols',
    'LogTagsError',
    'LineStore',
    'PipelineEvaluator',
    'Session',
    'View',
]
