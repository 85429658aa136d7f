"""
Политика исправлений: по результату сравнения решает, принять значение молча,
предложить исправление или считать, что совпадения нет.
"""

from enum import Enum
from typing import Iterable, Optional, Tuple

from cashback_models import MatchResult
from config_loader import DEFAULTS
import similarity


class Action(str, Enum):
    AUTO_ACCEPT = "auto_accept"
    STRONG_SUGGEST = "strong_suggest"
    WEAK_SUGGEST = "weak_suggest"
    NO_MATCH = "no_match"


class CorrectionPolicy:
    """Пороговые решения для категорий и банков."""

    def __init__(self, thresholds: Optional[dict] = None, stop_words: Optional[Iterable[str]] = None):
        t = dict(DEFAULTS["thresholds"])
        t.update(thresholds or {})
        self.strong_threshold = float(t["strong"])
        self.weak_threshold = float(t["weak"])
        self.bank_threshold = float(t["bank"])
        self.stop_words = frozenset(stop_words) if stop_words is not None else similarity.DEFAULT_STOP_WORDS

    @staticmethod
    def _is_same(result: MatchResult, query: Optional[str]) -> bool:
        if query is None:
            return False
        return query.strip().lower() == result.candidate.strip().lower()

    def decide(self, result: MatchResult, original_length: int, query: Optional[str] = None) -> Action:
        if result.score == 100 and self._is_same(result, query):
            return Action.AUTO_ACCEPT
        if result.score > self.strong_threshold:
            return Action.STRONG_SUGGEST
        if result.score > self.weak_threshold and result.distance <= max(original_length // 2, 4):
            return Action.WEAK_SUGGEST
        return Action.NO_MATCH

    def decide_bank(self, result: MatchResult, query: Optional[str] = None) -> Action:
        # для банков слабого уровня нет
        if result.score == 100 and self._is_same(result, query):
            return Action.AUTO_ACCEPT
        if result.score > self.bank_threshold:
            return Action.STRONG_SUGGEST
        return Action.NO_MATCH

    def suggest(self, query: str, candidates: Iterable[str], kind: str = "category") -> Tuple[Action, Optional[MatchResult]]:
        """Сравнивает запрос с кандидатами и сразу применяет политику."""
        result = similarity.find_best_candidate(query, candidates, stop_words=self.stop_words)
        if result is None:
            return Action.NO_MATCH, None
        if kind == "bank":
            return self.decide_bank(result, query), result
        return self.decide(result, len(query.strip()), query), result
