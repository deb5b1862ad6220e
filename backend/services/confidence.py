# services/confidence.py
from typing import Dict, Tuple

from services.audit_config import DEFAULT_WEIGHTS


class ConfidenceScorer:
    """
    신호 개수를 [0, 1] 범위의 휴리스틱 신뢰도로 합산한다.
    각 신호는 (가중치 x 개수)를 상한으로 자른 뒤 더하고, 합계도 1.0으로 자른다.
    """

    def __init__(self, weights: Dict[str, Tuple[float, float]] = None):
        self.weights = dict(weights or DEFAULT_WEIGHTS)

    def _part(self, signal: str, count: int) -> float:
        weight, cap = self.weights.get(signal, (0.0, 0.0))
        return min(weight * max(0, count), cap)

    def score(self, keywords: int, dates: int, times: int, names: int) -> float:
        total = (
            self._part("keyword", keywords)
            + self._part("date", dates)
            + self._part("time", times)
            + self._part("name", names)
        )
        return max(0.0, min(1.0, round(total, 6)))
