import copy
import os
from typing import Optional

import yaml


KNOWN_BANKS = (
    "Тинькофф",
    "Сбер",
    "Сбербанк",
    "Альфа-Банк",
    "Альфа",
    "ВТБ",
    "Райффайзен",
    "Газпромбанк",
    "Открытие",
    "Росбанк",
    "МТС Банк",
    "Совкомбанк",
    "Ак Барс",
    "Уралсиб",
    "Промсвязьбанк",
    "Банк Санкт-Петербург",
    "Хоум Кредит",
    "Русский Стандарт",
    "Почта Банк",
)

STOP_WORDS = (
    "в", "во", "на", "и", "для", "из", "к", "по", "с", "со", "от", "до",
    "у", "за", "над", "под", "при", "город", "городе", "городом",
)


DEFAULTS = {
    "thresholds": {"strong": 60.0, "weak": 40.0, "bank": 60.0},
    "search": {"fallback_category": "Все покупки", "list_limit": 1000, "default_list_size": 5},
    "known_banks": list(KNOWN_BANKS),
    "stop_words": list(STOP_WORDS),
    "api": {"base_url": "http://localhost:8080", "timeout": 30},
    "state": {"backend": "memory", "db_path": "advisor_state.db"},
}


def _default_path() -> str:
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "config", "advisor.yml")


def load_advisor_config(path: Optional[str] = None) -> dict:
    """Читает config/advisor.yml поверх DEFAULTS и применяет переменные окружения."""
    path = path or os.getenv("ADVISOR_CONFIG") or _default_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except FileNotFoundError:
        cfg = {}

    # shallow merge defaults
    merged = copy.deepcopy(DEFAULTS)
    for k, v in (cfg or {}).items():
        if isinstance(v, dict) and isinstance(merged.get(k), dict):
            mv = dict(merged[k])
            mv.update(v)
            merged[k] = mv
        else:
            merged[k] = v

    # переменные окружения важнее файла
    if os.getenv("API_BASE_URL"):
        merged["api"]["base_url"] = os.getenv("API_BASE_URL")
    if os.getenv("ADVISOR_STATE_DB"):
        merged["state"]["backend"] = "sqlite"
        merged["state"]["db_path"] = os.getenv("ADVISOR_STATE_DB")

    merged["known_banks"] = tuple(merged["known_banks"])
    merged["stop_words"] = frozenset(w.lower() for w in merged["stop_words"])
    return merged
