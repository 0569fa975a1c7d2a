"""
Rerank

Time-decay reranking of vector similarity results.
"""

from candlewise.rerank.config import TimeDecayConfig
from candlewise.rerank.schemas import RankedResult, SearchResult
from candlewise.rerank.time_decay import Reranker, filter_by_min_score

__all__ = [
    'TimeDecayConfig',
    'RankedResult',
    'SearchResult',
    'Reranker',
    'filter_by_min_score',
]
