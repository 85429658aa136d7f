import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from keyboard import (
    Answer,
    BTN_CANCEL_SHORT,
    BTN_YES_DELETE,
    BUTTONS_DELETE,
    build_keyboard,
    classify_answer,
    command_page,
    navigation_target,
    total_command_pages,
)


@pytest.mark.parametrize("text,expected", [
    ("✅ Да, исправить", Answer.YES),
    ("❌ Нет, оставить как есть", Answer.NO),
    ("✏️ Изменить вручную", Answer.MANUAL),
    ("🚫 Отмена", Answer.CANCEL),
    ("❌ Отмена", Answer.CANCEL),
    ("✅ Да, удалить", Answer.DELETE),
    ("/cancel", Answer.CANCEL),
    ("да", Answer.YES),
    ("Да!", Answer.YES),
    ("нет", Answer.NO),
    ("отмена", Answer.CANCEL),
    ("да, удалить", Answer.DELETE),
    ("изменить вручную", Answer.MANUAL),
    ("надо подумать", Answer.OTHER),
    ("Такси", Answer.OTHER),
    ("", Answer.OTHER),
    ("▶️ 2", Answer.NAVIGATE),
])
def test_classify_answer(text, expected):
    assert classify_answer(text) == expected


def test_navigation_target():
    assert navigation_target("▶️ 2") == 1
    assert navigation_target("◀️ 1") == 0
    assert navigation_target("Такси") is None


def test_command_pages():
    assert total_command_pages() == 3
    assert command_page(0) == [["/start", "/help"], ["/add", "/best"], ["/cancel", "▶️ 2"]]
    assert command_page(1) == [["/list", "/update"], ["/delete", "/bankinfo"], ["◀️ 1", "/cancel", "▶️ 3"]]
    assert command_page(2) == [["/categorylist", "/banklist"], ["/joingroup", "/creategroup"], ["◀️ 2", "/cancel"]]


def test_command_page_is_clamped():
    assert command_page(99) == command_page(2)
    assert command_page(-1) == command_page(0)


def test_build_keyboard_puts_phase_buttons_first():
    rows = build_keyboard(BUTTONS_DELETE, 0)
    assert rows[0] == [BTN_YES_DELETE, BTN_CANCEL_SHORT]
    assert len(rows) == 1 + len(command_page(0))
    assert build_keyboard() == command_page(0)
