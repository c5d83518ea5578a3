"""
Services layer - line caching, views, evaluation and the session registry.
"""

from logtags.services.line_store import CacheStats, LineStore
from logtags.services.view import View
from logtags.services.pipeline import PipelineEvaluator
from logtags.services.session import Session

__all__ = [
    'CacheStats',
    'LineStore',
    'View',
    'PipelineEvaluator',
    'Session',
]
