"""
Search

Similar-window retrieval: vector index plus the service tying extraction,
reranking and outcomes together.
"""

from candlewise.search.service import PatternSearchReport, PatternSearchService
from candlewise.search.vector_index import InMemoryVectorIndex

__all__ = [
    'PatternSearchReport',
    'PatternSearchService',
    'InMemoryVectorIndex',
]
