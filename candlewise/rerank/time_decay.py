"""
Time-Decay Reranker

Fuses similarity with recency: final_score = score * weight(age_days).
Results with a future t_end count as age 0.
"""

from datetime import datetime
from typing import Iterable, List, Optional
import logging
import math

from candlewise.rerank.config import TimeDecayConfig
from candlewise.rerank.schemas import RankedResult, SearchResult
from candlewise.timeutils import age_in_days

LOG = logging.getLogger(__name__)


class Reranker:
    """Stateless reranker; one instance can serve any number of queries"""

    def __init__(self, config: Optional[TimeDecayConfig] = None):
        self.config = config or TimeDecayConfig.default()
        self.config.validate()

    def weight(self, age_days: float) -> float:
        age_days = max(age_days, 0.0)
        cfg = self.config

        if cfg.use_segments:
            if age_days <= cfg.recent_days:
                return cfg.recent_weight
            if age_days <= cfg.medium_days:
                return cfg.medium_weight
            return cfg.old_weight

        return math.exp(-cfg.decay_lambda * age_days)

    def rerank(self, results: Iterable[SearchResult], now: datetime) -> List[RankedResult]:
        """Score every result and sort by final score, highest first"""
        ranked = []
        for r in results:
            age = age_in_days(r.t_end, now) if r.t_end is not None else 0.0
            w = self.weight(age)
            ranked.append(RankedResult(
                result=r,
                original_score=r.score,
                time_weight=w,
                final_score=r.score * w,
            ))

        ranked.sort(key=lambda x: x.final_score, reverse=True)
        LOG.debug(f"Reranked {len(ranked)} results")
        return ranked

    def top_n(self, results: Iterable[SearchResult], now: datetime, n: int) -> List[RankedResult]:
        if n <= 0:
            return []
        return self.rerank(results, now)[:n]


def filter_by_min_score(ranked: Iterable[RankedResult], min_score: float) -> List[RankedResult]:
    """Drop results whose final score is below min_score"""
    return [r for r in ranked if r.final_score >= min_score]
