"""
Full-text search
"""

from .fts import FTSIndex, FTSManager

__all__ = ["FTSIndex", "FTSManager"]
