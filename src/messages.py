from typing import Dict, List, Optional

from cashback_models import CashbackRecord, MatchResult, ParsedRecord
from record_parser import RECORD_FORMAT


MSG_CANCELLED = "🚫 Операция отменена"
MSG_CHOOSE_OPTION = "❓ Пожалуйста, выберите один из вариантов"
MSG_KEEP_AS_IS = "Хорошо, оставляю как есть.\nОтправьте данные заново, если хотите продолжить."
MSG_TRY_DIFFERENT_NAME = "Хорошо, попробуйте ввести название категории по-другому."
MSG_DELETE_CANCELLED = "❌ Удаление отменено."
MSG_NOT_IN_GROUP = (
    "⚠️ Вы не состоите в группе!\n\n"
    "Сначала создайте группу или присоединитесь к существующей:\n"
    "/creategroup название - создать новую группу\n"
    "/joingroup название - присоединиться к группе"
)
MSG_UNKNOWN_COMMAND = "❌ Неизвестная команда. Используйте /help для справки."
MSG_SPECIFY_CATEGORY = "❌ Укажите категорию. Например: \"Такси\""
MSG_INVALID_ID = "❌ Неверный формат ID. Введите число или /cancel для отмены."
MSG_MANUAL_INPUT = f"✏️ Отправьте данные в формате:\n{RECORD_FORMAT}\n\nИли /cancel для отмены."
MSG_ENTER_CATEGORY = "✏️ Введите название категории для поиска:\n\nИли /cancel для отмены."
MSG_ENTER_BANK = "🏦 Введите название банка.\n\nПримеры:\n• Тинькофф\n• Сбер\n• Альфа-Банк\n\nИли /cancel для отмены."
MSG_BANK_TOO_SHORT = "❌ Название банка слишком короткое. Введите корректное название или /cancel для отмены."
MSG_BANK_DIGITS = "❌ Название банка не может состоять только из цифр. Введите корректное название или /cancel для отмены."
MSG_ENTER_UPDATE_ID = "🔢 Введите ID кешбека для обновления.\n\nИспользуйте /list для просмотра всех ID.\n\nИли /cancel для отмены."
MSG_ENTER_DELETE_ID = "🔢 Введите ID кешбека для удаления.\n\nИспользуйте /list для просмотра всех ID.\n\nИли /cancel для отмены."
MSG_ENTER_GROUP_CREATE = "👥 Введите название новой группы.\n\nПример: Семья\n\nИли /cancel для отмены."
MSG_ENTER_GROUP_JOIN = "👥 Введите название группы, к которой хотите присоединиться.\n\nИли /cancel для отмены."
MSG_GROUP_NAME_EMPTY = "❌ Название группы не может быть пустым. Введите название или /cancel для отмены."
MSG_NO_ACTIVE_CATEGORIES = "📝 Пока нет активных категорий в группе."
MSG_NO_ACTIVE_BANKS = "📝 Пока нет активных банков в группе."
MSG_NO_RECORDS_TO_SHOW = "📝 Нет записей для отображения."
MSG_ADD = (
    "📝 Отправьте данные о кэшбэке.\n\n"
    f"Формат: {RECORD_FORMAT}\n\n"
    "Примеры:\n"
    "• \"Тинькофф, Такси, 5%, 3000\"\n"
    "• \"Сбер, Супермаркеты, 10, 5000, 31.01.2025\"\n\n"
    "Можно отправить несколько строк сразу."
)
MSG_BEST = (
    "🔍 Введите категорию для поиска лучшего кэшбэка.\n\n"
    "Примеры:\n• Такси\n• Супермаркеты\n• Рестораны\n\n"
    "Или /cancel для отмены."
)

START_TEXT = """👋 Привет! Я — бот-помощник для отслеживания кэшбэка.

У вас несколько банковских карт с разными условиями кэшбэка?
Я помогу не запутаться и всегда выбирать самую выгодную карту.

📝 Как это работает?
Вы или ваши друзья добавляете условия кэшбэка своих карт: банк,
категорию, процент, лимит и дату окончания. Когда нужно заплатить,
просто напишите категорию, и я найду лучшее предложение в вашей группе.

⚠️ Я НЕ ищу информацию в интернете. Я показываю только то,
что добавили участники вашей группы.

🚀 С чего начать?
1. Создайте группу (/creategroup) или присоединитесь к существующей (/joingroup)
2. Добавьте условия кэшбэка своих карт
3. Спрашивайте, какую карту выбрать!

💡 Я исправляю опечатки в названиях банков и категорий.

📖 Полный список команд: /help"""

HELP_TEXT = """📖 Справка по командам

Для подробностей: /help (название команды), например /help add

👥 Группы:
• /creategroup — Создать новую группу
• /joingroup — Присоединиться к группе

💳 Управление кэшбэком:
• /add — Добавить кешбек
• /list — Список кэшбеков группы
• /update — Обновить свой кешбек
• /delete — Удалить свой кешбек

🔍 Поиск:
• /best — Лучший кэшбэк для категории
• /bankinfo — Кэшбэки конкретного банка
• /categorylist — Список активных категорий
• /banklist — Список активных банков

⚙️ Другое:
• /cancel — Отменить текущую операцию
• /start — Показать приветствие"""

COMMAND_HELP: Dict[str, Dict] = {
    "start": {"short": "Начало работы с ботом", "usage": "/start", "examples": ["/start"]},
    "help": {"short": "Справка по командам", "usage": "/help [команда]", "examples": ["/help", "/help add"]},
    "add": {
        "short": "Добавить кэшбэк",
        "usage": f"Отправьте данные через запятую: {RECORD_FORMAT}",
        "examples": ["Тинькофф, Такси, 5%, 3000", "Сбер, Супермаркеты, 10, 5000, 31.01.2025"],
    },
    "best": {
        "short": "Найти лучший кэшбэк",
        "usage": "Просто напишите категорию (без запятых) или /best категория",
        "examples": ["Такси", "/best Рестораны"],
    },
    "list": {
        "short": "Список кэшбэков группы",
        "usage": "/list [all | 1-10 | 1-5,8,10]",
        "examples": ["/list", "/list all", "/list 1-10", "/list 1-5,8,10"],
    },
    "update": {"short": "Обновить свой кэшбэк", "usage": "/update (ID)", "examples": ["/update 5"]},
    "delete": {"short": "Удалить свой кэшбэк", "usage": "/delete (ID)", "examples": ["/delete 5"]},
    "bankinfo": {
        "short": "Кэшбэки банка",
        "usage": "/bankinfo (название банка)",
        "examples": ["/bankinfo Тинькофф", "/bankinfo Сбер"],
    },
    "categorylist": {"short": "Список активных категорий", "usage": "/categorylist", "examples": ["/categorylist"]},
    "banklist": {"short": "Список активных банков", "usage": "/banklist", "examples": ["/banklist"]},
    "creategroup": {"short": "Создать группу", "usage": "/creategroup (название)", "examples": ["/creategroup Семья"]},
    "joingroup": {"short": "Присоединиться к группе", "usage": "/joingroup (название)", "examples": ["/joingroup Семья"]},
    "cancel": {"short": "Отменить текущую операцию", "usage": "/cancel", "examples": ["/cancel"]},
}


def _plural_variants(n: int) -> str:
    if n % 10 == 1 and n % 100 != 11:
        return "вариант"
    if 2 <= n % 10 <= 4 and not 12 <= n % 100 <= 14:
        return "варианта"
    return "вариантов"


def format_command_help(name: str) -> str:
    name = name.strip().lstrip("/")
    info = COMMAND_HELP.get(name)
    if info is None:
        return f"❌ Команда /{name} не найдена.\n\nИспользуйте /help для просмотра всех команд."
    text = f"📖 Справка по команде /{name}\n\n📝 {info['short']}\n\n💡 Использование:\n{info['usage']}\n\n📚 Примеры:\n"
    text += "\n".join(f"• {example}" for example in info["examples"])
    return text


def format_parsed_record(record: ParsedRecord) -> str:
    return (
        "📋 Распознанные данные:\n\n"
        f"🏦 Банк: {record.bank_name}\n"
        f"📁 Категория: {record.category}\n"
        f"📅 Действует до: {record.expiry_text()}\n"
        f"💰 Кэшбэк: {record.percent:.1f}%\n"
        f"💵 Макс. сумма: {record.cap:.0f}₽"
    )


def format_record(record: CashbackRecord) -> str:
    return (
        f"🆔 ID: {record.id}\n"
        f"🏦 Банк: {record.bank_name}\n"
        f"📁 Категория: {record.category}\n"
        f"📅 Действует до: {record.expiry_text()}\n"
        f"💰 Кэшбэк: {record.percent:.1f}%\n"
        f"💵 Макс. сумма: {record.cap:.0f}₽\n"
        f"👤 Карта: {record.user_display_name}"
    )


def format_saved(record: CashbackRecord) -> str:
    return "✅ Кешбек успешно сохранён!\n\n" + format_record(record)


def format_updated(record: CashbackRecord) -> str:
    return "✅ Кешбек обновлён!\n\n" + format_record(record)


def format_missing(missing: List[str]) -> str:
    return (
        "⚠️ Не хватает данных:\n" + ", ".join(missing) + "\n\n"
        f"Формат: {RECORD_FORMAT}\n"
        "Пример: \"Тинькофф, Такси, 5%, 3000\""
    )


def format_search_results(records: List[CashbackRecord], requested: str, is_fallback: bool, fallback_category: str) -> str:
    n = len(records)
    if is_fallback:
        text = (
            f"💡 Кэшбэк для категории \"{requested}\" не найден.\n"
            f"Показываю кэшбэк на \"{fallback_category}\" ({n} {_plural_variants(n)}):\n\n"
        )
    else:
        text = f"🏆 Все кэшбэки для \"{requested}\" ({n} {_plural_variants(n)}):\n\n"

    medals = ["🥇 ", "🥈 ", "🥉 "]
    for i, record in enumerate(records):
        prefix = medals[i] if i < len(medals) else f"{i + 1}. "
        text += (
            f"{prefix}🏦 {record.bank_name}\n"
            f"   📁 {record.category}\n"
            f"   💰 {record.percent:.1f}% до {record.cap:.0f}₽\n"
            f"   📅 До {record.expiry_text()}\n"
            f"   👤 {record.user_display_name}\n\n"
        )
    return text.rstrip()


def format_not_found(category: str) -> str:
    return (
        "❌ Кэшбэк не найден\n\n"
        f"📁 Категория: \"{category}\"\n\n"
        "💡 Похоже, ещё нет кешбека для этой категории.\n\n"
        "Чтобы добавить, напишите через запятую:\n"
        f"Банк, {category}, Процент, Сумма[, Дата окончания]"
    )


def format_list_table(records: List[CashbackRecord], total: int, show_all: bool, indices: Optional[List[int]], default_size: int = 5) -> str:
    if show_all:
        text = f"📋 Все кешбеки группы ({total}):\n\n"
    elif indices is None:
        text = f"📋 Последние {default_size} кешбеков (всего {total}):\n\n"
    else:
        text = f"📋 Выбранные кешбеки (всего {total}):\n\n"

    for i, record in enumerate(records, start=1):
        text += (
            f"{i}. 🏦 {record.bank_name}\n"
            f"   📁 {record.category}\n"
            f"   💰 {record.percent:.1f}% до {record.cap:.0f}₽\n"
            f"   📅 До {record.expiry_text()}\n"
            f"   👤 {record.user_display_name} (ID: {record.id})\n\n"
        )

    if not show_all and indices is None and total > default_size:
        text += (
            "💡 Используйте:\n"
            "• /list all - показать все\n"
            "• /list 1-10 - показать с 1 по 10\n"
            "• /list 1-5,8 - показать 1-5 и 8"
        )
    return text.rstrip()


def format_bank_info(bank_name: str, records: List[CashbackRecord]) -> str:
    text = f"🏦 Активные кэшбэки банка \"{bank_name}\" ({len(records)}):\n\n"
    for i, record in enumerate(records, start=1):
        text += (
            f"{i}. 📁 {record.category}\n"
            f"   💰 {record.percent:.1f}% до {record.cap:.0f}₽\n"
            f"   📅 До {record.expiry_text()}\n"
            f"   👤 {record.user_display_name}\n\n"
        )
    return text.rstrip()


def format_bank_not_found(bank_name: str) -> str:
    return (
        f"❌ Кэшбэки для банка \"{bank_name}\" не найдены.\n\n"
        "💡 Используйте /banklist для просмотра доступных банков."
    )


def format_category_list(categories: List[str]) -> str:
    text = f"📁 Активные категории ({len(categories)}):\n\n"
    text += "\n".join(f"{i}. {c}" for i, c in enumerate(categories, start=1))
    text += "\n\n💡 Используйте /best для поиска лучшего кэшбэка по категории"
    return text


def format_bank_list(banks: List[str]) -> str:
    text = f"🏦 Активные банки ({len(banks)}):\n\n"
    text += "\n".join(f"{i}. {b}" for i, b in enumerate(banks, start=1))
    text += "\n\n💡 Используйте /bankinfo [название] для просмотра кэшбэков банка"
    return text


def format_copy_line(record: CashbackRecord) -> str:
    """Строка текущих значений, которую удобно скопировать и поправить."""
    return f"{record.bank_name}, {record.category}, {record.percent:.1f}, {record.cap:.0f}, {record.expiry_text()}"


def format_update_prompt(record: CashbackRecord) -> str:
    return (
        f"📝 Обновление кешбека ID: {record.id}\n\n"
        "Текущие данные:\n"
        f"🏦 Банк: {record.bank_name}\n"
        f"📁 Категория: {record.category}\n"
        f"📅 Действует до: {record.expiry_text()}\n"
        f"💰 Кэшбэк: {record.percent:.1f}%\n"
        f"💵 Макс. сумма: {record.cap:.0f}₽\n\n"
        "✏️ Скопируйте строку ниже, измените и отправьте новые данные:\n\n"
        f"{format_copy_line(record)}"
    )


def format_delete_prompt(record: CashbackRecord) -> str:
    return (
        "⚠️ Вы уверены, что хотите удалить этот кешбек?\n\n"
        f"🆔 ID: {record.id}\n"
        f"🏦 Банк: {record.bank_name}\n"
        f"📁 Категория: {record.category}\n"
        f"💰 {record.percent:.1f}% до {record.cap:.0f}₽\n"
        f"📅 До {record.expiry_text()}\n\n"
        "❓ Удалить?"
    )


def format_deleted(record_id: int) -> str:
    return f"✅ Кешбек ID {record_id} успешно удалён!"


def format_record_not_found(record_id: int) -> str:
    return f"Кешбек с ID {record_id} не найден."


def format_not_owner(action: str) -> str:
    return f"Вы можете {action} только свой кешбек."


def format_bank_correction(original: str, suggested: str) -> str:
    return (
        "💡 Возможная опечатка в названии банка:\n\n"
        f"Вы написали: \"{original}\"\n"
        f"Предлагаю исправить на: \"{suggested}\"\n\n"
        "❓ Исправить?"
    )


def format_category_correction(original: str, suggested: str, weak: bool) -> str:
    if weak:
        return (
            "❌ Категория не найдена\n\n"
            f"📁 Вы написали: \"{original}\"\n"
            f"💡 Может быть: \"{suggested}\"?\n\n"
            "❓ Попробовать с этим вариантом?"
        )
    return (
        "❌ Категория не найдена\n\n"
        f"📁 Вы написали: \"{original}\"\n"
        f"💡 Возможно, вы имели в виду: \"{suggested}\"\n\n"
        "❓ Искать с исправленным названием?"
    )


def format_confirmation(record: ParsedRecord, corrections: Dict[str, MatchResult]) -> str:
    lines = []
    if "bank_name" in corrections:
        lines.append(f"🏦 Банк: {record.bank_name} → {corrections['bank_name'].candidate}")
    if "category" in corrections:
        lines.append(f"📁 Категория: {record.category} → {corrections['category'].candidate}")
    return (
        format_parsed_record(record) + "\n\n"
        "💡 Возможно, вы имели в виду:\n\n" + "\n".join(lines) + "\n\n"
        "❓ Исправить и сохранить?"
    )


def format_batch_summary(results: List[str], success: int, failed: int) -> str:
    return f"📊 Результаты:\n✅ Успешно: {success}\n❌ Ошибки: {failed}\n\n" + "\n".join(results)


def format_group_created(name: str) -> str:
    return (
        f"✅ Группа \"{name}\" успешно создана и вы к ней присоединились!\n\n"
        f"Вы можете пригласить друзей командой:\n/joingroup {name}"
    )


def format_group_joined(name: str) -> str:
    return (
        f"✅ Вы присоединились к группе \"{name}\"!\n\n"
        "Теперь вы можете:\n"
        "• Добавлять кэшбэк: /add\n"
        "• Искать лучший кэшбэк: /best\n"
        "• Смотреть список: /list"
    )


def format_group_missing(name: str) -> str:
    return f"❌ Группа \"{name}\" не существует.\n\nСоздайте её: /creategroup {name}"


def format_already_in_group(name: str) -> str:
    return f"⚠️ Вы уже состоите в группе \"{name}\""


def format_error(error: Exception) -> str:
    return f"❌ {error}"


def format_command_page(page: int, total: int) -> str:
    return f"📖 Команды, страница {page + 1} из {total}"
