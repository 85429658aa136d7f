"""
Разбор текстовых сообщений пользователя.

Формат записи: "Банк, Категория, Процент, Сумма[, Дата окончания]".
Дата окончания необязательна, по умолчанию последний день текущего месяца.
"""

import calendar
import re
from datetime import date, datetime
from typing import List, Optional, Tuple

from cashback_models import ParsedRecord
from errors import ValidationError


RECORD_FORMAT = "Банк, Категория, Процент, Сумма[, Дата окончания]"
MAX_LIST_INDEX = 1000

# более длинные основы проверяются раньше: "март" не должен стать маем
_MONTH_STEMS = sorted(
    [
        ("январ", 1), ("янв", 1),
        ("феврал", 2), ("фев", 2),
        ("март", 3), ("мар", 3),
        ("апрел", 4), ("апр", 4),
        ("май", 5), ("ма", 5),
        ("июн", 6), ("ию", 6),
        ("июл", 7),
        ("август", 8), ("авг", 8),
        ("сентябр", 9), ("сен", 9),
        ("октябр", 10), ("окт", 10),
        ("ноябр", 11), ("ноя", 11),
        ("декабр", 12), ("дек", 12),
    ],
    key=lambda item: -len(item[0]),
)

_DAY_MONTH_YEAR = re.compile(r"^(\d{2})[./](\d{2})[./](\d{4})$")
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")
_MONTH_YEAR = re.compile(r"^(\d{2})[./](\d{4})$")
_LIST_RANGE = re.compile(r"^(\d+)\s*-\s*(\d+)$")


def normalize_text(text: str) -> str:
    """Убирает пробелы по краям и схлопывает повторяющиеся пробелы."""
    return " ".join((text or "").split())


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _month_end(year: int, month: int, raw: str) -> date:
    if not 1 <= month <= 12:
        raise ValidationError(f"неверный формат даты: {raw}. Используйте дд.мм.гггг")
    return last_day_of_month(year, month)


def parse_expiry_date(text: str, today: Optional[date] = None) -> date:
    today = today or date.today()
    raw = (text or "").strip()
    value = raw.lower()

    m = _DAY_MONTH_YEAR.match(value)
    if m:
        try:
            return datetime.strptime("{}.{}.{}".format(*m.groups()), "%d.%m.%Y").date()
        except ValueError:
            raise ValidationError(f"неверный формат даты: {raw}. Используйте дд.мм.гггг")

    m = _YEAR_MONTH.match(value)
    if m:
        return _month_end(int(m.group(1)), int(m.group(2)), raw)

    m = _MONTH_YEAR.match(value)
    if m:
        return _month_end(int(m.group(2)), int(m.group(1)), raw)

    for stem, month in _MONTH_STEMS:
        if stem in value:
            return last_day_of_month(today.year, month)

    raise ValidationError(f"неверный формат даты: {raw}. Используйте дд.мм.гггг")


def _parse_number(raw: str, what: str) -> float:
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"неверный формат {what}: {raw.strip()}")


def parse_record(text: str, today: Optional[date] = None) -> ParsedRecord:
    """Разбирает одну запись через запятую. Бросает ValidationError при ошибке формата."""
    parts = (text or "").split(",")
    if len(parts) < 4:
        raise ValidationError(f"неверный формат. Используйте: {RECORD_FORMAT}")

    record = ParsedRecord(
        bank_name=normalize_text(parts[0]),
        category=normalize_text(parts[1]),
    )

    percent_raw = parts[2].replace("%", "").strip()
    record.percent = _parse_number(percent_raw, "процента") if percent_raw else 0.0
    if not 0 <= record.percent <= 100:
        raise ValidationError(f"процент должен быть от 0 до 100: {parts[2].strip()}")

    amount_raw = parts[3].lower().replace("руб", "").replace("р", "").replace("₽", "").replace(" ", "").strip()
    record.cap = _parse_number(amount_raw, "суммы") if amount_raw else 0.0
    if record.cap < 0:
        raise ValidationError(f"сумма не может быть отрицательной: {parts[3].strip()}")

    today = today or date.today()
    if len(parts) >= 5 and parts[4].strip():
        record.expiry = parse_expiry_date(parts[4], today)
    else:
        record.expiry = last_day_of_month(today.year, today.month)
    return record


def parse_complete_record(text: str, today: Optional[date] = None) -> ParsedRecord:
    """То же, что parse_record, но ещё и требует все поля."""
    record = parse_record(text, today)
    missing = record.missing_fields()
    if missing:
        raise ValidationError("не хватает данных: " + ", ".join(missing))
    return record


def parse_batch_lines(text: str) -> List[str]:
    """Непустые строки сообщения, похожие на запись (содержат запятую)."""
    lines = []
    for line in (text or "").split("\n"):
        line = line.strip()
        if line and "," in line:
            lines.append(line)
    return lines


def parse_list_arguments(args: str) -> Tuple[Optional[List[int]], bool]:
    """
    Аргументы /list: "" означает последние записи, "all" все записи,
    "1-10" или "1-5,8,10" номера записей (с единицы).
    Возвращает (номера или None, показывать ли все).
    """
    args = (args or "").strip().lower()
    if not args:
        return None, False
    if args in ("all", "все"):
        return None, True

    indices: List[int] = []
    for part in args.split(","):
        part = part.strip()
        if not part:
            continue
        m = _LIST_RANGE.match(part)
        if m:
            start, end = int(m.group(1)), int(m.group(2))
            if start < 1 or end < start:
                raise ValidationError(f"неверный диапазон: {part}")
            if end > MAX_LIST_INDEX:
                raise ValidationError(f"слишком большой номер: {end}")
            numbers = range(start, end + 1)
        elif part.isdigit():
            number = int(part)
            if number < 1 or number > MAX_LIST_INDEX:
                raise ValidationError(f"неверный номер: {part}")
            numbers = [number]
        else:
            raise ValidationError(f"не понимаю \"{part}\"")
        for n in numbers:
            if n not in indices:
                indices.append(n)

    if not indices:
        raise ValidationError("не указаны номера записей")
    return indices, False
