import re
from typing import Iterable, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from cashback_models import MatchResult
from config_loader import STOP_WORDS


DEFAULT_STOP_WORDS = frozenset(STOP_WORDS)

# слова состоят из латиницы и кириллицы, остальное разделитель
_WORD_SPLIT = re.compile(r"[^a-zA-Zа-яА-ЯёЁ]+")

EXACT_SCORE = 100.0
CONTAINS_SCORE = 95.0
PREFIX_SCORE = 90.0
ALL_EXACT_BONUS = 5.0


def _normalize(text: str) -> str:
    if not text:
        return ""
    return " ".join(text.split()).lower()


def edit_distance(a: str, b: str) -> int:
    """Расстояние Левенштейна без учёта регистра."""
    return Levenshtein.distance((a or "").lower(), (b or "").lower())


def similarity(a: str, b: str) -> float:
    """Похожесть в процентах: (1 - d / max(len)) * 100."""
    a = a or ""
    b = b or ""
    longest = max(len(a), len(b))
    if longest == 0:
        return 100.0
    return (1.0 - edit_distance(a, b) / longest) * 100.0


def tokenize(text: str, stop_words: Iterable[str] = DEFAULT_STOP_WORDS) -> List[str]:
    """Разбивает строку на значимые слова (без служебных и однобуквенных)."""
    stop = stop_words if isinstance(stop_words, (set, frozenset)) else frozenset(stop_words)
    parts = _WORD_SPLIT.split(_normalize(text))
    return [p for p in parts if len(p) >= 2 and p not in stop]


def _best_word_match(word: str, candidate: str, candidate_words: List[str]) -> Tuple[float, int, bool]:
    for cw in candidate_words:
        if cw == word:
            return EXACT_SCORE, 0, True
    if word in candidate:
        return CONTAINS_SCORE, 0, True

    best_score = 0.0
    best_distance = len(word) + len(candidate)
    for cw in candidate_words:
        if cw.startswith(word):
            s, d = PREFIX_SCORE, len(cw) - len(word)
        else:
            s, d = similarity(word, cw), edit_distance(word, cw)
        if s > best_score or (s == best_score and d < best_distance):
            best_score, best_distance = s, d
    return best_score, best_distance, False


def score_words(query_words: List[str], candidate: str, stop_words: Iterable[str] = DEFAULT_STOP_WORDS) -> Tuple[float, int]:
    """
    Похожесть кандидата на набор слов запроса.

    Для каждого слова запроса берётся лучшее совпадение среди слов кандидата,
    затем оценки и расстояния усредняются. Порядок слов запроса не влияет на результат.
    """
    cand = _normalize(candidate)
    cand_words = tokenize(cand, stop_words) or [cand]

    total_score = 0.0
    total_distance = 0
    exact = 0
    words = sorted(query_words)
    for word in words:
        s, d, is_exact = _best_word_match(word, cand, cand_words)
        total_score += s
        total_distance += d
        if is_exact:
            exact += 1

    avg_score = total_score / len(words)
    # округление половин вверх, расстояния неотрицательны
    avg_distance = int(total_distance / len(words) + 0.5)
    if exact == len(words):
        avg_score = min(EXACT_SCORE, avg_score + ALL_EXACT_BONUS)
    return avg_score, avg_distance


def _dedupe(candidates: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for c in candidates:
        if c is None or c in seen:
            continue
        seen.add(c)
        result.append(c)
    return result


def find_best_candidate(
    query: str,
    candidates: Iterable[str],
    word_aware: bool = True,
    stop_words: Iterable[str] = DEFAULT_STOP_WORDS,
) -> Optional[MatchResult]:
    """
    Лучший кандидат для запроса или None, если кандидатов нет.

    Кандидат, совпадающий с запросом без учёта регистра и пробелов, выигрывает сразу.
    Иначе при равной оценке выигрывает меньшее расстояние, затем кандидат,
    встретившийся в списке раньше.
    """
    unique = _dedupe(candidates)
    if not unique:
        return None

    normalized = _normalize(query)
    # запрос без значимых слов сравнивается целой строкой
    words = tokenize(normalized, stop_words) if word_aware else []

    best: Optional[MatchResult] = None
    for cand in unique:
        # точное совпадение всегда лучше вхождения ("Альфа" против "Альфа-Банк")
        if normalized and _normalize(cand) == normalized:
            return MatchResult(candidate=cand, score=EXACT_SCORE, distance=0)
        if words:
            s, d = score_words(words, cand, stop_words)
        else:
            s, d = similarity(normalized, _normalize(cand)), edit_distance(normalized, _normalize(cand))
        if best is None or s > best.score or (s == best.score and d < best.distance):
            best = MatchResult(candidate=cand, score=s, distance=d)
    return best


def score(query: str, candidates: Iterable[str]) -> Optional[MatchResult]:
    return find_best_candidate(query, candidates, word_aware=True)
