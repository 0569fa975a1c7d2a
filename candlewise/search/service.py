"""
Pattern Search Service

Query flow:
    Window → FeatureExtractor (shape vector) → vector index TopK
           → drop the query window → Reranker (time decay) → optional min score
           → optional OutcomeEngine over the matches, aggregated per horizon
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional
import logging

from candlewise.feature_engine.extractor import FeatureExtractor
from candlewise.feature_engine.schemas import WindowFeatures
from candlewise.outcome_engine.engine import OutcomeEngine, aggregate_results
from candlewise.outcome_engine.schemas import AggregatedOutcome, OutcomeResult
from candlewise.rerank.schemas import RankedResult
from candlewise.rerank.time_decay import Reranker, filter_by_min_score
from candlewise.window_engine.schemas import Window

LOG = logging.getLogger(__name__)


@dataclass
class PatternSearchReport:
    """Ranked matches for one query window with their forward outcomes"""

    query_window_id: str
    matches: List[RankedResult] = field(default_factory=list)
    outcomes: List[OutcomeResult] = field(default_factory=list)
    aggregated: Dict[int, AggregatedOutcome] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'query_window_id': self.query_window_id,
            'matches': [m.to_dict() for m in self.matches],
            'aggregated': {h: a.to_dict() for h, a in sorted(self.aggregated.items())},
        }


class PatternSearchService:
    """
    Similar-window search over an index of extracted shape vectors.

    outcome_engine and window_store are only needed for search_with_outcomes().
    """

    def __init__(
        self,
        extractor: FeatureExtractor,
        index,
        reranker: Optional[Reranker] = None,
        outcome_engine: Optional[OutcomeEngine] = None,
        window_store=None
    ):
        self.extractor = extractor
        self.index = index
        self.reranker = reranker or Reranker()
        self.outcome_engine = outcome_engine
        self.window_store = window_store

    def index_features(self, window: Window, features: WindowFeatures):
        row = features.feature_row
        self.index.upsert(window.window_id, features.shape_vector, {
            'symbol': window.symbol,
            'timeframe': window.timeframe,
            't_end': window.t_end,
            'vol_bucket': row.vol_bucket,
            'trend_bucket': row.trend_bucket,
            'feature_version': row.feature_version,
        })

    def index_window(self, window: Window) -> Optional[WindowFeatures]:
        """Extract and index one window; incomplete windows are skipped"""
        features = self.extractor.extract(window)
        if features is None:
            return None
        self.index_features(window, features)
        return features

    def search(
        self,
        window: Window,
        now: datetime,
        top_k: int = 10,
        filters: Optional[dict] = None,
        min_score: Optional[float] = None
    ) -> List[RankedResult]:
        features = self.extractor.extract(window)
        if features is None:
            LOG.warning(f"Query window {window.window_id} is incomplete, no search performed")
            return []

        # One extra slot in case the query window is itself indexed
        hits = self.index.search(features.shape_vector, top_k + 1, filters)
        hits = [h for h in hits if h.window_id != window.window_id][:top_k]

        ranked = self.reranker.rerank(hits, now)
        if min_score is not None:
            ranked = filter_by_min_score(ranked, min_score)

        LOG.debug(f"Search for {window.window_id}: {len(hits)} hits, {len(ranked)} ranked")
        return ranked

    def search_with_outcomes(
        self,
        window: Window,
        now: datetime,
        top_k: int = 10,
        filters: Optional[dict] = None,
        min_score: Optional[float] = None,
        horizons: Optional[List[int]] = None
    ) -> PatternSearchReport:
        if self.outcome_engine is None or self.window_store is None:
            raise RuntimeError("search_with_outcomes requires an outcome engine and a window store")

        matches = self.search(window, now, top_k, filters, min_score)
        outcomes = self.outcome_engine.calculate_for_window_ids(
            [m.window_id for m in matches], self.window_store, horizons
        )
        aggregated = aggregate_results(
            outcomes, include_partial=self.outcome_engine.config.include_partial_in_aggregate
        )

        LOG.info(f"✓ Pattern search {window.window_id}: {len(matches)} matches, "
                 f"{len(outcomes)} outcomes")
        return PatternSearchReport(
            query_window_id=window.window_id,
            matches=matches,
            outcomes=outcomes,
            aggregated=aggregated,
        )
