"""
Точка входа для транспорта: on_text и on_cancel.

Все ходы одного пользователя выполняются под его замком, поэтому два быстрых
сообщения применяются строго по очереди. Разные пользователи не ждут друг друга.
"""

import logging
from typing import Optional

from api_client import CashbackAPIClient
from cashback_models import IdentifierField, Reply
from config_loader import load_advisor_config
from conversation import ConversationEngine
from correction_policy import CorrectionPolicy
from errors import NotFoundError
from keyboard import navigation_target
from state_store import ConversationStore, create_store
import messages


logger = logging.getLogger(__name__)

# команды, которым нужна группа пользователя
_GROUP_COMMANDS = {"/add", "/best", "/list", "/update", "/delete", "/bankinfo", "/categorylist", "/banklist"}


class CashbackAdvisor:
    def __init__(self, engine: ConversationEngine, store: ConversationStore, client: CashbackAPIClient):
        self.engine = engine
        self.store = store
        self.client = client

    @classmethod
    def from_config(cls, cfg: Optional[dict] = None) -> "CashbackAdvisor":
        cfg = cfg or load_advisor_config()
        client = CashbackAPIClient(
            cfg["api"]["base_url"],
            timeout=cfg["api"]["timeout"],
            list_limit=cfg["search"]["list_limit"],
        )
        store = create_store(cfg)
        policy = CorrectionPolicy(cfg["thresholds"], cfg["stop_words"])
        engine = ConversationEngine(
            client,
            store,
            policy,
            known_banks=cfg["known_banks"],
            fallback_category=cfg["search"]["fallback_category"],
            default_list_size=cfg["search"]["default_list_size"],
        )
        return cls(engine, store, client)

    def on_text(self, user_id, text: str, display_name: Optional[str] = None) -> Reply:
        user_id = str(user_id)
        display_name = display_name or user_id
        text = (text or "").strip()

        with self.store.session(user_id):
            logger.info("📨 Сообщение от %s: %s", user_id, text)
            if text.startswith("/"):
                return self.engine.guarded(user_id, self._route_command, user_id, display_name, text)

            state = self.store.get(user_id)
            if state is not None:
                return self.engine.handle_state(user_id, display_name, state, text)
            if navigation_target(text) is not None:
                return self.engine.navigate(user_id, text)
            return self.engine.guarded(user_id, self._on_idle_text, user_id, display_name, text)

    def on_cancel(self, user_id) -> Reply:
        user_id = str(user_id)
        with self.store.session(user_id):
            self.store.clear(user_id)
            return self.engine.reply(user_id, messages.MSG_CANCELLED)

    def _group_of(self, user_id: str) -> Optional[str]:
        try:
            return self.client.get_user_group(user_id)
        except NotFoundError:
            return None

    def _on_idle_text(self, user_id: str, display_name: str, text: str) -> Reply:
        group_name = self._group_of(user_id)
        if group_name is None:
            return self.engine.reply(user_id, messages.MSG_NOT_IN_GROUP)
        if "," in text:
            return self.engine.new_record(user_id, display_name, group_name, text)
        return self.engine.search_best(user_id, group_name, text)

    def _route_command(self, user_id: str, display_name: str, text: str) -> Reply:
        parts = text.split(maxsplit=1)
        command = parts[0].split("@", 1)[0].lower()
        args = parts[1].strip() if len(parts) > 1 else ""
        engine = self.engine

        # новая команда всегда вытесняет незавершённый диалог
        self.store.clear(user_id)

        if command == "/start":
            return engine.reply(user_id, messages.START_TEXT)
        if command == "/help":
            return engine.reply(user_id, messages.format_command_help(args) if args else messages.HELP_TEXT)
        if command == "/cancel":
            return engine.reply(user_id, messages.MSG_CANCELLED)
        if command == "/creategroup":
            if not args:
                return engine.ask_identifier(user_id, IdentifierField.CREATE_GROUP, messages.MSG_ENTER_GROUP_CREATE)
            return engine.create_group(user_id, args)
        if command == "/joingroup":
            if not args:
                return engine.ask_identifier(user_id, IdentifierField.JOIN_GROUP, messages.MSG_ENTER_GROUP_JOIN)
            return engine.join_group(user_id, args)
        if command not in _GROUP_COMMANDS:
            return engine.reply(user_id, messages.MSG_UNKNOWN_COMMAND)

        group_name = self._group_of(user_id)
        if group_name is None:
            return engine.reply(user_id, messages.MSG_NOT_IN_GROUP)

        if command == "/add":
            if not args:
                return engine.reply(user_id, messages.MSG_ADD)
            return engine.new_record(user_id, display_name, group_name, args)
        if command == "/best":
            if not args:
                return engine.ask_identifier(user_id, IdentifierField.CATEGORY, messages.MSG_BEST, group_name)
            return engine.search_best(user_id, group_name, args)
        if command == "/list":
            return engine.list_records(user_id, group_name, args)
        if command in ("/update", "/delete"):
            updating = command == "/update"
            if not args:
                field = IdentifierField.UPDATE_ID if updating else IdentifierField.DELETE_ID
                prompt = messages.MSG_ENTER_UPDATE_ID if updating else messages.MSG_ENTER_DELETE_ID
                return engine.ask_identifier(user_id, field, prompt, group_name)
            if not args.isdigit():
                return engine.reply(user_id, messages.MSG_INVALID_ID)
            if updating:
                return engine.begin_update(user_id, int(args), group_name)
            return engine.begin_delete(user_id, int(args))
        if command == "/bankinfo":
            if not args:
                return engine.ask_identifier(user_id, IdentifierField.BANK_NAME, messages.MSG_ENTER_BANK, group_name)
            return engine.bank_info(user_id, group_name, args)
        if command == "/categorylist":
            return engine.category_list(user_id, group_name)
        return engine.bank_list(user_id, group_name)
