"""
Кнопки ответа и распознавание ответов пользователя.

Ответ сводится к закрытому набору значений Answer: сначала сравниваем
с подписями кнопок, затем ищем ключевые слова целиком.
"""

import re
from enum import Enum
from typing import List, Optional


BTN_YES_CORRECT = "✅ Да, исправить"
BTN_NO_KEEP = "❌ Нет, оставить как есть"
BTN_MANUAL_EDIT = "✏️ Изменить вручную"
BTN_CANCEL = "🚫 Отмена"
BTN_YES_DELETE = "✅ Да, удалить"
BTN_CANCEL_SHORT = "❌ Отмена"
BTN_NAV_PREV = "◀️"
BTN_NAV_NEXT = "▶️"

BUTTONS_CONFIRM = [
    [BTN_YES_CORRECT, BTN_NO_KEEP],
    [BTN_MANUAL_EDIT],
    [BTN_CANCEL],
]

BUTTONS_CONFIRM_SIMPLE = [
    [BTN_YES_CORRECT, BTN_NO_KEEP],
    [BTN_MANUAL_EDIT],
]

BUTTONS_DELETE = [
    [BTN_YES_DELETE, BTN_CANCEL_SHORT],
]

COMMANDS = [
    "/start", "/help", "/add", "/best",
    "/list", "/update", "/delete", "/bankinfo",
    "/categorylist", "/banklist", "/joingroup", "/creategroup",
]
COMMANDS_PER_PAGE = 4
COMMANDS_PER_ROW = 2


class Answer(str, Enum):
    YES = "yes"
    NO = "no"
    MANUAL = "manual"
    CANCEL = "cancel"
    DELETE = "delete"
    NAVIGATE = "navigate"
    OTHER = "other"


_LABELS = {
    BTN_YES_CORRECT.lower(): Answer.YES,
    BTN_NO_KEEP.lower(): Answer.NO,
    BTN_MANUAL_EDIT.lower(): Answer.MANUAL,
    BTN_CANCEL.lower(): Answer.CANCEL,
    BTN_CANCEL_SHORT.lower(): Answer.CANCEL,
    BTN_YES_DELETE.lower(): Answer.DELETE,
    "/cancel": Answer.CANCEL,
}

# порядок важен: "да, удалить" означает удаление, а не "да"
_KEYWORDS = [
    (Answer.CANCEL, {"отмена", "отменить", "cancel"}),
    (Answer.MANUAL, {"вручную"}),
    (Answer.DELETE, {"удалить"}),
    (Answer.NO, {"нет", "оставить", "no"}),
    (Answer.YES, {"да", "исправить", "yes"}),
]

_NAV = re.compile(r"^(◀️|▶️)\s*(\d+)$")
_WORDS = re.compile(r"[a-zа-яё]+")


def navigation_target(text: str) -> Optional[int]:
    """Номер страницы команд (с нуля) для кнопок навигации, иначе None."""
    m = _NAV.match((text or "").strip())
    if not m:
        return None
    return max(int(m.group(2)) - 1, 0)


def classify_answer(text: str) -> Answer:
    value = (text or "").strip().lower()
    if not value:
        return Answer.OTHER
    if value in _LABELS:
        return _LABELS[value]
    if navigation_target(value) is not None:
        return Answer.NAVIGATE
    if "✏️" in value:
        return Answer.MANUAL

    words = set(_WORDS.findall(value))
    for answer, keywords in _KEYWORDS:
        if words & keywords:
            return answer
    return Answer.OTHER


def total_command_pages() -> int:
    return (len(COMMANDS) + COMMANDS_PER_PAGE - 1) // COMMANDS_PER_PAGE


def clamp_page(page: int) -> int:
    return min(max(page, 0), total_command_pages() - 1)


def command_page(page: int) -> List[List[str]]:
    """Страница команд по две в ряд и строка навигации."""
    page = clamp_page(page)
    start = page * COMMANDS_PER_PAGE
    page_commands = COMMANDS[start:start + COMMANDS_PER_PAGE]

    rows = [page_commands[i:i + COMMANDS_PER_ROW] for i in range(0, len(page_commands), COMMANDS_PER_ROW)]

    total = total_command_pages()
    if total > 1:
        nav = []
        if page > 0:
            nav.append(f"{BTN_NAV_PREV} {page}")
        nav.append("/cancel")
        if page < total - 1:
            nav.append(f"{BTN_NAV_NEXT} {page + 2}")
        rows.append(nav)
    return rows


def build_keyboard(buttons: Optional[List[List[str]]] = None, page: int = 0) -> List[List[str]]:
    rows = [list(row) for row in (buttons or [])]
    rows.extend(command_page(page))
    return rows
