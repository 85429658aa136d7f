from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional


DATE_FORMAT = "%d.%m.%Y"


def parse_api_date(value) -> Optional[date]:
    """Дата из ответа API: RFC3339, ISO-дата или дд.мм.гггг."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if "T" in text:
        text = text.split("T", 1)[0]
    for fmt in ("%Y-%m-%d", DATE_FORMAT):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


@dataclass
class ParsedRecord:
    bank_name: str = ""
    category: str = ""
    percent: float = 0.0
    cap: float = 0.0
    expiry: Optional[date] = None

    def missing_fields(self) -> List[str]:
        missing = []
        if not self.bank_name:
            missing.append("название банка")
        if not self.category:
            missing.append("категория")
        if self.expiry is None:
            missing.append("дата окончания")
        if self.percent == 0:
            missing.append("процент кэшбэка")
        if self.cap == 0:
            missing.append("максимальная сумма")
        return missing

    def copy(self) -> "ParsedRecord":
        return replace(self)

    def expiry_text(self) -> str:
        return self.expiry.strftime(DATE_FORMAT) if self.expiry else ""

    def to_dict(self) -> Dict:
        return {
            "bank_name": self.bank_name,
            "category": self.category,
            "percent": self.percent,
            "cap": self.cap,
            "expiry": self.expiry.isoformat() if self.expiry else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ParsedRecord":
        return cls(
            bank_name=data.get("bank_name", ""),
            category=data.get("category", ""),
            percent=float(data.get("percent") or 0),
            cap=float(data.get("cap") or 0),
            expiry=parse_api_date(data.get("expiry")),
        )


@dataclass
class CashbackRecord:
    id: int
    group_name: str
    bank_name: str
    category: str
    user_id: str
    user_display_name: str
    expiry: Optional[date]
    percent: float
    cap: float
    created_at: Optional[str] = None

    def is_active(self, today: date) -> bool:
        # запись действует включительно до даты окончания
        return self.expiry is not None and self.expiry >= today

    def expiry_text(self) -> str:
        return self.expiry.strftime(DATE_FORMAT) if self.expiry else "—"

    @classmethod
    def from_api(cls, data: Dict) -> "CashbackRecord":
        return cls(
            id=int(data["id"]),
            group_name=data.get("group_name", ""),
            bank_name=data.get("bank_name", ""),
            category=data.get("category", ""),
            user_id=str(data.get("user_id", "")),
            user_display_name=data.get("user_display_name", ""),
            expiry=parse_api_date(data.get("month_year")),
            percent=float(data.get("cashback_percent") or 0),
            cap=float(data.get("max_amount") or 0),
            created_at=data.get("created_at"),
        )


@dataclass(frozen=True)
class MatchResult:
    candidate: str
    score: float
    distance: int

    def to_dict(self) -> Dict:
        return {"candidate": self.candidate, "score": self.score, "distance": self.distance}

    @classmethod
    def from_dict(cls, data: Dict) -> "MatchResult":
        return cls(data["candidate"], float(data["score"]), int(data["distance"]))


@dataclass
class Reply:
    text: str
    keyboard: List[List[str]] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"text": self.text, "keyboard": self.keyboard}


class Phase(str, Enum):
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    AWAITING_BANK_CORRECTION = "awaiting_bank_correction"
    AWAITING_CATEGORY_CORRECTION = "awaiting_category_correction"
    AWAITING_MANUAL_INPUT = "awaiting_manual_input"
    AWAITING_UPDATE_DATA = "awaiting_update_data"
    AWAITING_DELETE_CONFIRM = "awaiting_delete_confirm"
    AWAITING_IDENTIFIER_INPUT = "awaiting_identifier_input"


class IdentifierField(str, Enum):
    UPDATE_ID = "update_id"
    DELETE_ID = "delete_id"
    BANK_NAME = "bank_name"
    CATEGORY = "category"
    CREATE_GROUP = "create_group"
    JOIN_GROUP = "join_group"


@dataclass
class ConversationState:
    """Состояние диалога одного пользователя. Отсутствие состояния означает простой."""

    phase: Phase
    pending_record: Optional[ParsedRecord] = None
    pending_match: Optional[MatchResult] = None
    corrections: Dict[str, MatchResult] = field(default_factory=dict)
    target_record_id: Optional[int] = None
    page_cursor: int = 0
    input_field: Optional[IdentifierField] = None
    origin: Optional[str] = None
    group_name: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            "phase": self.phase.value,
            "pending_record": self.pending_record.to_dict() if self.pending_record else None,
            "pending_match": self.pending_match.to_dict() if self.pending_match else None,
            "corrections": {k: v.to_dict() for k, v in self.corrections.items()},
            "target_record_id": self.target_record_id,
            "page_cursor": self.page_cursor,
            "input_field": self.input_field.value if self.input_field else None,
            "origin": self.origin,
            "group_name": self.group_name,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "ConversationState":
        return cls(
            phase=Phase(data["phase"]),
            pending_record=ParsedRecord.from_dict(data["pending_record"]) if data.get("pending_record") else None,
            pending_match=MatchResult.from_dict(data["pending_match"]) if data.get("pending_match") else None,
            corrections={k: MatchResult.from_dict(v) for k, v in (data.get("corrections") or {}).items()},
            target_record_id=data.get("target_record_id"),
            page_cursor=int(data.get("page_cursor") or 0),
            input_field=IdentifierField(data["input_field"]) if data.get("input_field") else None,
            origin=data.get("origin"),
            group_name=data.get("group_name"),
        )
