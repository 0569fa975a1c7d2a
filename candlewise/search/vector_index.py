"""
In-Memory Vector Index

Brute-force cosine similarity over stored shape vectors with scalar
equality filters. Fine for tests and local research; a dedicated vector
database takes this role in production.
"""

from typing import Dict, List, Optional
import threading

import numpy as np

from candlewise.rerank.schemas import SearchResult


PAYLOAD_FIELDS = ('symbol', 'timeframe', 't_end', 'vol_bucket', 'trend_bucket', 'feature_version')


class InMemoryVectorIndex:

    def __init__(self, dim: int):
        if dim <= 0:
            raise ValueError(f"dim must be positive, got {dim}")
        self.dim = dim
        self._lock = threading.RLock()
        self._ids: List[str] = []
        self._vectors: List[np.ndarray] = []
        self._fields: List[dict] = []
        self._positions: Dict[str, int] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def _check_dim(self, vector) -> np.ndarray:
        arr = np.asarray(vector, dtype=np.float32).ravel()
        if arr.shape[0] != self.dim:
            raise ValueError(f"Vector dimension {arr.shape[0]} does not match index dimension {self.dim}")
        return arr

    def upsert(self, window_id: str, vector, fields: Optional[dict] = None):
        arr = self._check_dim(vector)
        payload = {k: v for k, v in (fields or {}).items() if k in PAYLOAD_FIELDS}
        with self._lock:
            pos = self._positions.get(window_id)
            if pos is None:
                self._positions[window_id] = len(self._ids)
                self._ids.append(window_id)
                self._vectors.append(arr)
                self._fields.append(payload)
            else:
                self._vectors[pos] = arr
                self._fields[pos] = payload

    def search(self, vector, top_k: int, filters: Optional[dict] = None) -> List[SearchResult]:
        """
        Up to top_k results by descending cosine similarity.

        filters: field → required value (equality only).
        Zero vectors score 0 against everything.
        """
        query = self._check_dim(vector)
        if top_k <= 0:
            return []

        with self._lock:
            candidates = [
                i for i, f in enumerate(self._fields)
                if not filters or all(f.get(k) == v for k, v in filters.items())
            ]
            if not candidates:
                return []
            matrix = np.vstack([self._vectors[i] for i in candidates]).astype(np.float64)
            ids = [self._ids[i] for i in candidates]
            payloads = [self._fields[i] for i in candidates]

        q = query.astype(np.float64)
        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        dots = matrix @ q
        scores = np.divide(dots, norms, out=np.zeros_like(dots), where=norms > 0)

        order = np.argsort(-scores, kind='stable')[:top_k]
        results = []
        for i in order:
            payload = payloads[i]
            results.append(SearchResult(
                window_id=ids[i],
                score=float(scores[i]),
                symbol=payload.get('symbol', ""),
                timeframe=payload.get('timeframe', ""),
                t_end=payload.get('t_end'),
                vol_bucket=int(payload.get('vol_bucket', 0)),
                trend_bucket=int(payload.get('trend_bucket', 0)),
                feature_version=int(payload.get('feature_version', 0)),
            ))
        return results
