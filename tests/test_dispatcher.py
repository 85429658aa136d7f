import unittest
from unittest.mock import MagicMock
from datetime import date
import sys
import os
import threading
import time

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from api_client import CashbackAPIClient
from cashback_models import CashbackRecord, IdentifierField, Phase
from config_loader import KNOWN_BANKS
from conversation import ConversationEngine
from correction_policy import CorrectionPolicy
from dispatcher import CashbackAdvisor
from errors import NotFoundError
from keyboard import command_page
from state_store import ConversationStore
import messages


class TestCashbackAdvisor(unittest.TestCase):
    """Маршрутизация сообщений и команд"""

    def setUp(self):
        self.client = MagicMock(spec=CashbackAPIClient)
        self.client.get_user_group.return_value = "Семья"
        self.client.list_records.return_value = [
            CashbackRecord(1, "Семья", "Тинькофф", "Такси", "1", "Иван", date(2025, 2, 28), 5.0, 3000.0),
            CashbackRecord(2, "Семья", "Альфа", "Рестораны", "1", "Иван", date(2025, 2, 28), 10.0, 2000.0),
        ]
        self.client.fetch_candidate_names.return_value = ["Такси", "Рестораны"]
        self.client.group_exists.return_value = True

        self.store = ConversationStore()
        engine = ConversationEngine(
            self.client, self.store, CorrectionPolicy(), KNOWN_BANKS, today=lambda: date(2025, 2, 10)
        )
        self.advisor = CashbackAdvisor(engine, self.store, self.client)

    def say(self, text, user_id="1"):
        return self.advisor.on_text(user_id, text)

    def phase(self, user_id="1"):
        state = self.store.get(user_id)
        return state.phase if state else None

    def test_user_without_group_is_asked_to_join(self):
        """Без группы поиск и команды записей недоступны"""
        self.client.get_user_group.side_effect = NotFoundError("нет группы")

        self.assertEqual(self.say("Такси").text, messages.MSG_NOT_IN_GROUP)
        self.assertEqual(self.say("/best Такси").text, messages.MSG_NOT_IN_GROUP)
        self.assertEqual(self.say("/start").text, messages.START_TEXT)
        self.client.list_records.assert_not_called()

    def test_help_commands(self):
        self.assertEqual(self.say("/help").text, messages.HELP_TEXT)
        self.assertIn("Справка по команде /add", self.say("/help add").text)
        self.assertIn("Команда /foo не найдена", self.say("/help foo").text)
        self.assertEqual(self.say("/foo").text, messages.MSG_UNKNOWN_COMMAND)

    def test_command_with_bot_mention(self):
        reply = self.say("/best@cashback_bot Такси")
        self.assertIn("🏆", reply.text)

    def test_command_replaces_pending_dialog(self):
        """Любая команда сбрасывает незавершённый диалог"""
        self.say("Рестарны")
        self.assertEqual(self.phase(), Phase.AWAITING_CATEGORY_CORRECTION)

        self.say("/start")
        self.assertIsNone(self.phase())

    def test_cancel(self):
        self.say("/update")
        self.assertEqual(self.say("/cancel").text, messages.MSG_CANCELLED)
        self.assertIsNone(self.phase())

        self.say("/delete")
        self.assertEqual(self.advisor.on_cancel("1").text, messages.MSG_CANCELLED)
        self.assertIsNone(self.phase())

    def test_prompts_without_arguments(self):
        self.assertEqual(self.say("/add").text, messages.MSG_ADD)
        self.assertIsNone(self.phase())

        self.assertEqual(self.say("/best").text, messages.MSG_BEST)
        self.assertEqual(self.store.get("1").input_field, IdentifierField.CATEGORY)
        self.assertIn("🏆", self.say("Такси").text)

        self.assertEqual(self.say("/update abc").text, messages.MSG_INVALID_ID)

    def test_create_group(self):
        reply = self.say("/creategroup  Друзья ")

        self.client.create_group.assert_called_once_with("Друзья", "1")
        self.assertIn('Группа "Друзья" успешно создана', reply.text)

    def test_create_group_by_prompt(self):
        self.say("/creategroup")
        self.assertEqual(self.say("").text, messages.MSG_GROUP_NAME_EMPTY)
        self.assertEqual(self.phase(), Phase.AWAITING_IDENTIFIER_INPUT)

        self.say("Друзья")
        self.client.create_group.assert_called_once_with("Друзья", "1")
        self.assertIsNone(self.phase())

    def test_join_group(self):
        reply = self.say("/joingroup Друзья")

        self.client.join_group.assert_called_once_with("1", "Друзья")
        self.assertIn('Вы присоединились к группе "Друзья"', reply.text)

    def test_join_missing_group(self):
        self.client.group_exists.return_value = False

        reply = self.say("/joingroup Друзья")

        self.assertIn('Группа "Друзья" не существует', reply.text)
        self.client.join_group.assert_not_called()

    def test_join_current_group(self):
        reply = self.say("/joingroup Семья")

        self.assertEqual(reply.text, messages.format_already_in_group("Семья"))
        self.client.join_group.assert_not_called()

    def test_navigation_when_idle(self):
        reply = self.say("▶️ 2")

        self.assertEqual(reply.keyboard, command_page(1))
        self.assertEqual(reply.text, messages.format_command_page(1, 3))
        self.assertIsNone(self.phase())

    def test_navigation_keeps_dialog(self):
        """Переключение страницы не меняет фазу диалога"""
        self.say("/update")
        reply = self.say("▶️ 3")

        state = self.store.get("1")
        self.assertEqual(state.phase, Phase.AWAITING_IDENTIFIER_INPUT)
        self.assertEqual(state.page_cursor, 2)
        self.assertEqual(reply.keyboard, command_page(2))

    def test_turns_of_one_user_are_serialized(self):
        """Второе сообщение ждёт, пока обрабатывается первое"""
        results = []
        worker = threading.Thread(target=lambda: results.append(self.say("/start")))
        with self.store.session("1"):
            worker.start()

            time.sleep(0.1)
            self.assertEqual(results, [])
            self.assertEqual(self.store.pending_turns("1"), 2)
            self.assertEqual(self.say("/start", user_id="2").text, messages.START_TEXT)

        worker.join(timeout=5)
        self.assertEqual(len(results), 1)


if __name__ == '__main__':
    unittest.main()
