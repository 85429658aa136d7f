"""
Конечный автомат диалога.

Каждый ход пользователя обрабатывается обработчиком текущей фазы. Нечёткое
сравнение (similarity) и политика исправлений (correction_policy) решают,
принять название молча, предложить исправление или сообщить, что совпадений нет.
"""

import logging
from datetime import date
from typing import Callable, Dict, Iterable, List, Optional

from api_client import CashbackAPIClient
from cashback_models import (
    CashbackRecord,
    ConversationState,
    IdentifierField,
    MatchResult,
    ParsedRecord,
    Phase,
    Reply,
)
from correction_policy import Action, CorrectionPolicy
from errors import AdvisorError, NotFoundError, OwnershipError, ValidationError
from keyboard import (
    Answer,
    BUTTONS_CONFIRM,
    BUTTONS_CONFIRM_SIMPLE,
    BUTTONS_DELETE,
    build_keyboard,
    classify_answer,
    clamp_page,
    navigation_target,
    total_command_pages,
)
from record_parser import (
    normalize_text,
    parse_batch_lines,
    parse_complete_record,
    parse_list_arguments,
    parse_record,
)
from state_store import ConversationStore
import messages


logger = logging.getLogger(__name__)

ORIGIN_SAVE = "save"
ORIGIN_BANK_INFO = "bank_info"

_PHASE_BUTTONS = {
    Phase.AWAITING_CONFIRMATION: BUTTONS_CONFIRM,
    Phase.AWAITING_BANK_CORRECTION: BUTTONS_CONFIRM_SIMPLE,
    Phase.AWAITING_CATEGORY_CORRECTION: BUTTONS_CONFIRM_SIMPLE,
    Phase.AWAITING_DELETE_CONFIRM: BUTTONS_DELETE,
}

_SUGGESTIONS = (Action.STRONG_SUGGEST, Action.WEAK_SUGGEST)


class ConversationEngine:
    """Обработчики фаз и операции, которые их запускают."""

    def __init__(
        self,
        client: CashbackAPIClient,
        store: ConversationStore,
        policy: CorrectionPolicy,
        known_banks: Iterable[str],
        fallback_category: str = "Все покупки",
        default_list_size: int = 5,
        today: Optional[Callable[[], date]] = None,
    ):
        self.client = client
        self.store = store
        self.policy = policy
        self.known_banks = tuple(known_banks)
        self.fallback_category = fallback_category
        self.default_list_size = default_list_size
        self.today = today or date.today
        self._handlers = {
            Phase.AWAITING_CONFIRMATION: self._on_confirmation,
            Phase.AWAITING_BANK_CORRECTION: self._on_bank_correction,
            Phase.AWAITING_CATEGORY_CORRECTION: self._on_category_correction,
            Phase.AWAITING_MANUAL_INPUT: self._on_manual_input,
            Phase.AWAITING_UPDATE_DATA: self._on_update_data,
            Phase.AWAITING_DELETE_CONFIRM: self._on_delete_confirm,
            Phase.AWAITING_IDENTIFIER_INPUT: self._on_identifier_input,
        }

    # --- ответы и ошибки ---

    def reply(self, user_id, text: str, page: Optional[int] = None) -> Reply:
        """Ответ с клавиатурой, соответствующей состоянию после хода."""
        state = self.store.get(user_id)
        buttons = _PHASE_BUTTONS.get(state.phase) if state else None
        if page is None:
            page = state.page_cursor if state else 0
        return Reply(text=text, keyboard=build_keyboard(buttons, page))

    def guarded(self, user_id, operation: Callable[..., Reply], *args, **kwargs) -> Reply:
        """
        Выполняет операцию и переводит ошибки в ответ.

        ValidationError оставляет состояние как есть, пользователь может повторить ввод.
        Остальные ошибки завершают шаг и сбрасывают состояние.
        """
        try:
            return operation(*args, **kwargs)
        except ValidationError as e:
            logger.info("⚠️ Ошибка ввода пользователя %s: %s", user_id, e.detail)
            return self.reply(user_id, messages.format_error(e.detail))
        except AdvisorError as e:
            logger.warning("❌ Шаг прерван для пользователя %s: %s", user_id, e.detail)
            self.store.clear(user_id)
            return self.reply(user_id, messages.format_error(e.detail))

    def _set_state(self, user_id, state: ConversationState, previous: Optional[ConversationState] = None):
        if previous is not None:
            state.page_cursor = previous.page_cursor
        self.store.set(user_id, state)

    # --- вход в автомат ---

    def handle_state(self, user_id, display_name: str, state: ConversationState, text: str) -> Reply:
        answer = classify_answer(text)

        if answer == Answer.NAVIGATE:
            state.page_cursor = clamp_page(navigation_target(text))
            self.store.set(user_id, state)
            return self.reply(user_id, messages.format_command_page(state.page_cursor, total_command_pages()))

        if answer == Answer.CANCEL:
            self.store.clear(user_id)
            return self.reply(user_id, messages.MSG_CANCELLED)

        handler = self._handlers[state.phase]
        return self.guarded(user_id, handler, user_id, display_name, state, text, answer)

    def navigate(self, user_id, text: str) -> Reply:
        page = clamp_page(navigation_target(text) or 0)
        return self.reply(user_id, messages.format_command_page(page, total_command_pages()), page=page)

    def ask_identifier(self, user_id, input_field: IdentifierField, prompt: str, group_name: Optional[str] = None) -> Reply:
        self._set_state(
            user_id,
            ConversationState(phase=Phase.AWAITING_IDENTIFIER_INPUT, input_field=input_field, group_name=group_name),
        )
        return self.reply(user_id, prompt)

    # --- добавление записи ---

    def new_record(self, user_id, display_name: str, group_name: str, text: str) -> Reply:
        lines = parse_batch_lines(text)
        if len(lines) > 1:
            return self.save_batch(user_id, display_name, group_name, lines)

        record = parse_record(text, self.today())
        logger.info(
            "🔍 Распознано: Bank='%s', Category='%s', Percent=%.1f%%, Amount=%.0f, Expiry='%s'",
            record.bank_name, record.category, record.percent, record.cap, record.expiry_text(),
        )

        if record.bank_name:
            action, match = self.policy.suggest(record.bank_name, self.known_banks, kind="bank")
            if action == Action.AUTO_ACCEPT:
                record.bank_name = match.candidate
            elif action == Action.STRONG_SUGGEST and match.candidate != record.bank_name:
                logger.info("💡 Исправление банка: '%s' → '%s' (%.1f%%)", record.bank_name, match.candidate, match.score)
                self._set_state(
                    user_id,
                    ConversationState(
                        phase=Phase.AWAITING_BANK_CORRECTION,
                        pending_record=record,
                        pending_match=match,
                        origin=ORIGIN_SAVE,
                        group_name=group_name,
                    ),
                )
                return self.reply(user_id, messages.format_bank_correction(record.bank_name, match.candidate))

        missing = record.missing_fields()
        if missing:
            return self.reply(user_id, messages.format_missing(missing))

        return self.validate_and_save(user_id, display_name, group_name, record)

    def validate_and_save(self, user_id, display_name: str, group_name: str, record: ParsedRecord, check_bank: bool = True) -> Reply:
        """Сверяет банк и категорию с уже известными в группе и сохраняет или просит подтверждения."""
        record = record.copy()
        corrections: Dict[str, MatchResult] = {}
        fields = ["category"]
        if check_bank:
            fields.insert(0, "bank_name")

        for field_name in fields:
            candidates = self.client.fetch_candidate_names(group_name, field_name)
            value = getattr(record, field_name)
            kind = "bank" if field_name == "bank_name" else "category"
            action, match = self.policy.suggest(value, candidates, kind=kind)
            if match is None:
                continue
            logger.info(
                "🔍 Сравнение %s: '%s' → '%s' (расстояние: %d, похожесть: %.1f%%, решение: %s)",
                field_name, value, match.candidate, match.distance, match.score, action.value,
            )
            if action == Action.AUTO_ACCEPT:
                setattr(record, field_name, match.candidate)
            elif action in _SUGGESTIONS and match.candidate.strip() != value.strip():
                corrections[field_name] = match

        if corrections:
            self._set_state(
                user_id,
                ConversationState(
                    phase=Phase.AWAITING_CONFIRMATION,
                    pending_record=record,
                    corrections=corrections,
                    group_name=group_name,
                ),
            )
            return self.reply(user_id, messages.format_confirmation(record, corrections))

        return self._save(user_id, display_name, group_name, record, force=False)

    def _save(self, user_id, display_name: str, group_name: str, record: ParsedRecord, force: bool) -> Reply:
        """
        Сохраняет запись. Состояние сбрасывается только после успешного сохранения
        или неисправимой ошибки; отказ сервера по данным оставляет диалог для повтора.
        """
        try:
            saved = self.client.create_record(record, user_id, display_name, group_name, force=force)
        except ValidationError as e:
            logger.warning("⚠️ Сервер отклонил запись: %s", e.detail)
            return self.reply(user_id, f"❌ Ошибка сохранения: {e.detail}")
        except AdvisorError as e:
            logger.error("❌ Ошибка сохранения: %s", e.detail)
            self.store.clear(user_id)
            return self.reply(user_id, f"❌ Ошибка сохранения: {e.detail}")
        self.store.clear(user_id)
        return self.reply(user_id, messages.format_saved(saved))

    def save_batch(self, user_id, display_name: str, group_name: str, lines: List[str]) -> Reply:
        """Несколько записей одним сообщением: каждая строка сохраняется без подтверждений."""
        self.store.clear(user_id)
        results = []
        success = failed = 0
        for i, line in enumerate(lines, start=1):
            try:
                record = parse_complete_record(line, self.today())
            except ValidationError as e:
                results.append(f"❌ Строка {i}: {e.detail}")
                failed += 1
                continue

            action, match = self.policy.suggest(record.bank_name, self.known_banks, kind="bank")
            if action in (Action.AUTO_ACCEPT, Action.STRONG_SUGGEST) and match.candidate != record.bank_name:
                logger.info("💡 Автокоррекция банка: '%s' → '%s'", record.bank_name, match.candidate)
                record.bank_name = match.candidate

            try:
                saved = self.client.create_record(record, user_id, display_name, group_name, force=True)
            except AdvisorError as e:
                results.append(f"❌ Строка {i}: {e.detail}")
                failed += 1
                continue
            results.append(f"✅ Строка {i}: {saved.bank_name} - {saved.category} (ID: {saved.id})")
            success += 1

        return self.reply(user_id, messages.format_batch_summary(results, success, failed))

    # --- поиск ---

    def _active(self, records: List[CashbackRecord]) -> List[CashbackRecord]:
        today = self.today()
        return [r for r in records if r.is_active(today)]

    @staticmethod
    def _by_category(records: List[CashbackRecord], category: str) -> List[CashbackRecord]:
        query = category.lower()
        found = [r for r in records if query in r.category.lower()]
        # точные совпадения первыми, затем по убыванию процента и лимита
        return sorted(found, key=lambda r: (r.category.lower() != query, -r.percent, -r.cap))

    def search_best(self, user_id, group_name: str, query: str, allow_suggestion: bool = True) -> Reply:
        category = normalize_text(query)
        if not category:
            return self.reply(user_id, messages.MSG_SPECIFY_CATEGORY)

        active = self._active(self.client.list_records(group_name))
        found = self._by_category(active, category)
        if found:
            return self.reply(user_id, messages.format_search_results(found, category, False, self.fallback_category))

        if category.lower() != self.fallback_category.lower():
            fallback = self._by_category(active, self.fallback_category)
            if fallback:
                return self.reply(
                    user_id, messages.format_search_results(fallback, category, True, self.fallback_category)
                )

        if not allow_suggestion:
            return self.reply(user_id, messages.format_not_found(category))

        candidates = self.client.fetch_candidate_names(group_name, "category")
        action, match = self.policy.suggest(category, candidates, kind="category")
        if action in _SUGGESTIONS:
            weak = action == Action.WEAK_SUGGEST
            logger.info(
                "%s Предлагаю исправление категории: '%s' → '%s' (расстояние: %d, похожесть: %.1f%%)",
                "⚠️" if weak else "✅", category, match.candidate, match.distance, match.score,
            )
            self._set_state(
                user_id,
                ConversationState(
                    phase=Phase.AWAITING_CATEGORY_CORRECTION,
                    pending_match=match,
                    group_name=group_name,
                ),
            )
            return self.reply(user_id, messages.format_category_correction(category, match.candidate, weak))

        # точное совпадение с просроченными записями тоже сюда: повторно предлагать нечего
        logger.info("❌ Исправление категории '%s' не предлагаю (%s)", category, action.value)
        return self.reply(user_id, messages.format_not_found(category))

    def bank_info(self, user_id, group_name: str, bank_name: str, allow_suggestion: bool = True) -> Reply:
        name = normalize_text(bank_name)
        active = self._active(self.client.list_records(group_name))
        found = [r for r in active if r.bank_name.lower() == name.lower()]
        if found:
            found.sort(key=lambda r: (-r.percent, -r.cap))
            return self.reply(user_id, messages.format_bank_info(found[0].bank_name, found))

        if allow_suggestion:
            candidates = self.client.fetch_candidate_names(group_name, "bank_name")
            action, match = self.policy.suggest(name, candidates, kind="bank")
            if action == Action.STRONG_SUGGEST and match.candidate.lower() != name.lower():
                logger.info("💡 Банк '%s' не найден, предлагаю '%s'", name, match.candidate)
                self._set_state(
                    user_id,
                    ConversationState(
                        phase=Phase.AWAITING_BANK_CORRECTION,
                        pending_match=match,
                        origin=ORIGIN_BANK_INFO,
                        group_name=group_name,
                    ),
                )
                return self.reply(user_id, messages.format_bank_correction(name, match.candidate))

        return self.reply(user_id, messages.format_bank_not_found(name))

    def category_list(self, user_id, group_name: str) -> Reply:
        names = self._distinct(self._active(self.client.list_records(group_name)), "category")
        if not names:
            return self.reply(user_id, messages.MSG_NO_ACTIVE_CATEGORIES)
        return self.reply(user_id, messages.format_category_list(names))

    def bank_list(self, user_id, group_name: str) -> Reply:
        names = self._distinct(self._active(self.client.list_records(group_name)), "bank_name")
        if not names:
            return self.reply(user_id, messages.MSG_NO_ACTIVE_BANKS)
        return self.reply(user_id, messages.format_bank_list(names))

    @staticmethod
    def _distinct(records: List[CashbackRecord], field_name: str) -> List[str]:
        seen = {}
        for r in records:
            value = getattr(r, field_name)
            seen.setdefault(value.lower(), value)
        return sorted(seen.values(), key=str.lower)

    def list_records(self, user_id, group_name: str, args: str) -> Reply:
        try:
            indices, show_all = parse_list_arguments(args)
        except ValidationError as e:
            return self.reply(
                user_id,
                f"❌ Неверный формат: {e.detail}\n\n"
                "Примеры:\n• /list - последние 5\n• /list all - все\n• /list 1-10 - с 1 по 10\n"
                "• /list 1-5,8,10 - с 1 по 5, а также 8 и 10",
            )

        records = self.client.list_records(group_name)
        if show_all:
            selected = records
        elif indices is None:
            selected = records[:self.default_list_size]
        else:
            selected = [records[i - 1] for i in indices if i <= len(records)]

        if not selected:
            return self.reply(user_id, messages.MSG_NO_RECORDS_TO_SHOW)
        return self.reply(
            user_id,
            messages.format_list_table(selected, len(records), show_all, indices, self.default_list_size),
        )

    # --- обновление и удаление ---

    def _owned_record(self, user_id, record_id: int, action: str) -> CashbackRecord:
        try:
            record = self.client.lookup_record(record_id)
        except NotFoundError:
            raise NotFoundError(messages.format_record_not_found(record_id))
        if record.user_id != str(user_id):
            raise OwnershipError(messages.format_not_owner(action))
        return record

    def begin_update(self, user_id, record_id: int, group_name: Optional[str] = None) -> Reply:
        record = self._owned_record(user_id, record_id, "обновлять")
        self._set_state(
            user_id,
            ConversationState(phase=Phase.AWAITING_UPDATE_DATA, target_record_id=record_id, group_name=group_name or record.group_name),
        )
        return self.reply(user_id, messages.format_update_prompt(record))

    def begin_delete(self, user_id, record_id: int) -> Reply:
        record = self._owned_record(user_id, record_id, "удалять")
        self._set_state(user_id, ConversationState(phase=Phase.AWAITING_DELETE_CONFIRM, target_record_id=record_id))
        return self.reply(user_id, messages.format_delete_prompt(record))

    # --- группы ---

    def create_group(self, user_id, group_name: str) -> Reply:
        name = normalize_text(group_name)
        self.store.clear(user_id)
        self.client.create_group(name, str(user_id))
        return self.reply(user_id, messages.format_group_created(name))

    def join_group(self, user_id, group_name: str) -> Reply:
        name = normalize_text(group_name)
        self.store.clear(user_id)
        if not self.client.group_exists(name):
            return self.reply(user_id, messages.format_group_missing(name))
        try:
            current = self.client.get_user_group(str(user_id))
        except NotFoundError:
            current = None
        if current == name:
            return self.reply(user_id, messages.format_already_in_group(name))
        if current:
            logger.info("👥 Пользователь %s переходит из группы '%s' в '%s'", user_id, current, name)
        self.client.join_group(str(user_id), name)
        return self.reply(user_id, messages.format_group_joined(name))

    def _group_of(self, user_id, state: ConversationState) -> str:
        return state.group_name or self.client.get_user_group(str(user_id))

    # --- обработчики фаз ---

    def _on_confirmation(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        if answer == Answer.YES:
            group_name = self._group_of(user_id, state)
            record = state.pending_record.copy()
            for field_name, match in state.corrections.items():
                fresh = self.client.fetch_candidate_names(group_name, field_name)
                if match.candidate in fresh:
                    setattr(record, field_name, match.candidate)
                else:
                    logger.warning("⚠️ Вариант '%s' для %s больше не существует, оставляю ввод", match.candidate, field_name)
            return self._save(user_id, display_name, group_name, record, force=False)

        if answer == Answer.NO:
            return self._save(user_id, display_name, self._group_of(user_id, state), state.pending_record, force=True)

        if answer == Answer.MANUAL:
            state.phase = Phase.AWAITING_MANUAL_INPUT
            state.corrections = {}
            self.store.set(user_id, state)
            return self.reply(user_id, messages.MSG_MANUAL_INPUT)

        return self.reply(user_id, messages.MSG_CHOOSE_OPTION)

    def _on_bank_correction(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        suggested = state.pending_match.candidate

        if state.origin == ORIGIN_BANK_INFO:
            if answer == Answer.YES:
                self.store.clear(user_id)
                return self.bank_info(user_id, self._group_of(user_id, state), suggested, allow_suggestion=False)
            if answer == Answer.MANUAL:
                self._set_state(
                    user_id,
                    ConversationState(
                        phase=Phase.AWAITING_IDENTIFIER_INPUT,
                        input_field=IdentifierField.BANK_NAME,
                        group_name=state.group_name,
                    ),
                    previous=state,
                )
                return self.reply(user_id, messages.MSG_ENTER_BANK)
            self.store.clear(user_id)
            return self.reply(user_id, messages.MSG_CANCELLED)

        if answer == Answer.YES:
            logger.info("✅ Пользователь подтвердил исправление банка: %s", suggested)
            record = state.pending_record.copy()
            record.bank_name = suggested
            missing = record.missing_fields()
            if missing:
                self.store.clear(user_id)
                return self.reply(user_id, messages.format_missing(missing))
            return self.validate_and_save(user_id, display_name, self._group_of(user_id, state), record, check_bank=False)

        if answer == Answer.MANUAL:
            state.phase = Phase.AWAITING_MANUAL_INPUT
            self.store.set(user_id, state)
            return self.reply(user_id, messages.MSG_MANUAL_INPUT)

        logger.info("❌ Пользователь отклонил исправление банка")
        self.store.clear(user_id)
        return self.reply(user_id, messages.MSG_KEEP_AS_IS)

    def _on_category_correction(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        if answer == Answer.YES:
            corrected = state.pending_match.candidate
            logger.info("✅ Пользователь подтвердил исправление категории: %s", corrected)
            self.store.clear(user_id)
            return self.search_best(user_id, self._group_of(user_id, state), corrected, allow_suggestion=False)

        if answer == Answer.MANUAL:
            self._set_state(
                user_id,
                ConversationState(
                    phase=Phase.AWAITING_IDENTIFIER_INPUT,
                    input_field=IdentifierField.CATEGORY,
                    group_name=state.group_name,
                ),
                previous=state,
            )
            return self.reply(user_id, messages.MSG_ENTER_CATEGORY)

        logger.info("❌ Пользователь отклонил исправление категории")
        self.store.clear(user_id)
        return self.reply(user_id, messages.MSG_TRY_DIFFERENT_NAME)

    def _on_manual_input(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        record = parse_complete_record(text, self.today())
        logger.info(
            "✅ Ручной ввод: Bank='%s', Category='%s', Percent=%.1f%%, Amount=%.0f",
            record.bank_name, record.category, record.percent, record.cap,
        )
        return self._save(user_id, display_name, self._group_of(user_id, state), record, force=True)

    def _on_update_data(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        record = parse_complete_record(text, self.today())
        current = self._owned_record(user_id, state.target_record_id, "обновлять")
        updated = self.client.update_record(state.target_record_id, record, state.group_name or current.group_name)
        self.store.clear(user_id)
        return self.reply(user_id, messages.format_updated(updated))

    def _on_delete_confirm(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        if answer in (Answer.DELETE, Answer.YES):
            self._owned_record(user_id, state.target_record_id, "удалять")
            self.client.delete_record(state.target_record_id)
            self.store.clear(user_id)
            return self.reply(user_id, messages.format_deleted(state.target_record_id))
        self.store.clear(user_id)
        return self.reply(user_id, messages.MSG_DELETE_CANCELLED)

    def _on_identifier_input(self, user_id, display_name, state: ConversationState, text: str, answer: Answer) -> Reply:
        value = normalize_text(text)
        target = state.input_field

        if target in (IdentifierField.UPDATE_ID, IdentifierField.DELETE_ID):
            if not value.isdigit():
                return self.reply(user_id, messages.MSG_INVALID_ID)
            if target == IdentifierField.UPDATE_ID:
                return self.begin_update(user_id, int(value), state.group_name)
            return self.begin_delete(user_id, int(value))

        if target == IdentifierField.BANK_NAME:
            if len(value) < 2:
                return self.reply(user_id, messages.MSG_BANK_TOO_SHORT)
            if value.isdigit():
                return self.reply(user_id, messages.MSG_BANK_DIGITS)
            self.store.clear(user_id)
            return self.bank_info(user_id, self._group_of(user_id, state), value)

        if target == IdentifierField.CATEGORY:
            self.store.clear(user_id)
            return self.search_best(user_id, self._group_of(user_id, state), value)

        if not value:
            return self.reply(user_id, messages.MSG_GROUP_NAME_EMPTY)
        if target == IdentifierField.CREATE_GROUP:
            return self.create_group(user_id, value)
        return self.join_group(user_id, value)
