import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from errors import ValidationError
from record_parser import (
    normalize_text,
    parse_batch_lines,
    parse_complete_record,
    parse_expiry_date,
    parse_list_arguments,
    parse_record,
)


TODAY = date(2025, 2, 10)


def test_parse_record_with_default_expiry():
    rec = parse_record("Тинькофф, Такси, 5%, 3000", TODAY)
    assert rec.bank_name == "Тинькофф"
    assert rec.category == "Такси"
    assert rec.percent == 5.0
    assert rec.cap == 3000.0
    assert rec.expiry == date(2025, 2, 28)
    assert rec.missing_fields() == []


def test_parse_record_normalizes_spaces():
    rec = parse_record("  Альфа-Банк ,  Кафе   и  рестораны , 10 , 2000", TODAY)
    assert rec.bank_name == "Альфа-Банк"
    assert rec.category == "Кафе и рестораны"


@pytest.mark.parametrize("raw,expected", [
    ("31.01.2025", date(2025, 1, 31)),
    ("31/01/2025", date(2025, 1, 31)),
    ("2025-03", date(2025, 3, 31)),
    ("04/2025", date(2025, 4, 30)),
    ("05.2025", date(2025, 5, 31)),
    ("март", date(2025, 3, 31)),
    ("мая", date(2025, 5, 31)),
    ("июнь", date(2025, 6, 30)),
    ("до июля", date(2025, 7, 31)),
    ("Декабря", date(2025, 12, 31)),
])
def test_parse_expiry_date_formats(raw, expected):
    assert parse_expiry_date(raw, TODAY) == expected


@pytest.mark.parametrize("raw", ["31.02.2025", "13.2025", "2025-00", "abc", ""])
def test_parse_expiry_date_rejects_garbage(raw):
    with pytest.raises(ValidationError):
        parse_expiry_date(raw, TODAY)


@pytest.mark.parametrize("raw,expected", [
    ("3 000 р", 3000.0),
    ("5000₽", 5000.0),
    ("4000 руб", 4000.0),
    ("1500.5", 1500.5),
])
def test_amount_units_are_stripped(raw, expected):
    rec = parse_record(f"Сбер, Аптеки, 3, {raw}", TODAY)
    assert rec.cap == expected


@pytest.mark.parametrize("text", [
    "Тинькофф, Такси",
    "Тинькофф, Такси, пять, 3000",
    "Тинькофф, Такси, 150, 3000",
    "Тинькофф, Такси, 5, -1",
    "Тинькофф, Такси, 5, много",
    "Тинькофф, Такси, 5, 3000, вчера",
])
def test_parse_record_errors(text):
    with pytest.raises(ValidationError):
        parse_record(text, TODAY)


def test_missing_fields_are_reported_in_order():
    rec = parse_record("Тинькофф, , 5, 0", TODAY)
    assert rec.missing_fields() == ["категория", "максимальная сумма"]

    with pytest.raises(ValidationError) as exc:
        parse_complete_record("Тинькофф, , 5, 0", TODAY)
    assert "категория, максимальная сумма" in exc.value.detail


def test_parse_batch_lines_keeps_record_like_lines():
    text = "Тинькофф, Такси, 5, 3000\n\n  Сбер, Аптеки, 3, 1000  \nпросто текст"
    assert parse_batch_lines(text) == ["Тинькофф, Такси, 5, 3000", "Сбер, Аптеки, 3, 1000"]


@pytest.mark.parametrize("args,expected", [
    ("", (None, False)),
    ("all", (None, True)),
    ("Все", (None, True)),
    ("1-3,5", ([1, 2, 3, 5], False)),
    ("2,2,1", ([2, 1], False)),
    (" 4 - 5 ", ([4, 5], False)),
])
def test_parse_list_arguments(args, expected):
    assert parse_list_arguments(args) == expected


@pytest.mark.parametrize("args", ["5-2", "x", "0", "1-5000", ","])
def test_parse_list_arguments_rejects(args):
    with pytest.raises(ValidationError):
        parse_list_arguments(args)


def test_normalize_text():
    assert normalize_text("  Кафе   и  рестораны ") == "Кафе и рестораны"
    assert normalize_text(None) == ""
