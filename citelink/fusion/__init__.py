"""
Fusion Module
=============
Merges spans from all channels with deduplication.
"""

from .fuser import SpanFuser, FusionConfig, FusionStats

__all__ = ['SpanFuser', 'FusionConfig', 'FusionStats']
