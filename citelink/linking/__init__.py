"""
Linking Module
==============
Span -> Reference linking cascade.
"""

from .linker import CitationLinker, LinkerConfig, LinkerStats, LinkRun, AuthorYearWeights
from .strategies import (
    LinkContext, LinkStrategy, pick_best,
    AnnotationDestStrategy, NumericStrategy, CorroboratedStrategy, AuthorYearFuzzyStrategy,
)

__all__ = [
    'CitationLinker', 'LinkerConfig', 'LinkerStats', 'LinkRun', 'AuthorYearWeights',
    'LinkContext', 'LinkStrategy', 'pick_best',
    'AnnotationDestStrategy', 'NumericStrategy', 'CorroboratedStrategy', 'AuthorYearFuzzyStrategy',
]
