"""
Citation Detection Channels
===========================
Each channel detects citations using a specific signal:
- annotation: PDF link annotations jumping into the bibliography
- numeric: [n], [n-m], [n,m,o] and parenthesized forms
- author_year: (Smith et al., 2020; Jones, 2019)
"""

from .annotation import AnnotationChannel, AnnotationConfig, infer_style
from .numeric import NumericChannel, NumericConfig
from .author_year import AuthorYearChannel, AuthorYearConfig

__all__ = [
    'AnnotationChannel', 'AnnotationConfig', 'infer_style',
    'NumericChannel', 'NumericConfig',
    'AuthorYearChannel', 'AuthorYearConfig',
]
