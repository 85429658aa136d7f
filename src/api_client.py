import logging
from typing import Dict, List, Optional

import requests

from cashback_models import CashbackRecord, ParsedRecord, DATE_FORMAT
from errors import BackendUnavailableError, NotFoundError, ValidationError


logger = logging.getLogger(__name__)

CASHBACK_PATH = "/api/v1/cashback"
GROUPS_PATH = "/api/v1/groups"
GROUPS_CHECK_PATH = "/api/v1/groups/check"
GROUPS_MEMBERS_PATH = "/api/v1/groups/members"
USER_GROUP_PATH = "/api/v1/users/{user_id}/group"

CANDIDATE_FIELDS = ("bank_name", "category")


class CashbackAPIClient:
    """Клиент REST API хранилища кэшбэков и групп."""

    def __init__(self, base_url: str, timeout: float = 30, list_limit: int = 1000):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.list_limit = list_limit

    def _request(self, method: str, path: str, expected=(200,), **kwargs) -> Optional[Dict]:
        url = f"{self.base_url}{path}"
        try:
            resp = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            logger.error("❌ Запрос %s %s не выполнен: %s", method, path, e)
            raise BackendUnavailableError(f"сервер недоступен: {e}")

        if resp.status_code not in expected:
            message = self._error_message(resp)
            logger.warning("⚠️ %s %s вернул %s: %s", method, path, resp.status_code, message)
            if resp.status_code == 404:
                raise NotFoundError(message)
            if resp.status_code in (400, 409, 422):
                raise ValidationError(message)
            raise BackendUnavailableError(f"ошибка API: {message}")

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            raise BackendUnavailableError("ошибка API: некорректный ответ сервера")

    @staticmethod
    def _error_message(resp) -> str:
        try:
            data = resp.json()
        except ValueError:
            return f"статус {resp.status_code}"
        if isinstance(data, dict) and data.get("error"):
            details = data.get("details")
            return f"{data['error']}: {details}" if details else str(data["error"])
        return f"статус {resp.status_code}"

    # --- кэшбэк ---

    def list_records(self, group_name: str) -> List[CashbackRecord]:
        data = self._request(
            "GET",
            CASHBACK_PATH,
            params={"group_name": group_name, "limit": self.list_limit, "offset": 0},
        ) or {}
        rules = data.get("rules") or []
        return [CashbackRecord.from_api(r) for r in rules]

    def fetch_candidate_names(self, group_name: str, field: str) -> List[str]:
        """Уникальные значения поля в группе в порядке первого появления."""
        if field not in CANDIDATE_FIELDS:
            raise ValueError(f"unknown candidate field: {field}")
        names: List[str] = []
        seen = set()
        for record in self.list_records(group_name):
            value = getattr(record, field)
            if value and value not in seen:
                seen.add(value)
                names.append(value)
        return names

    def create_record(self, record: ParsedRecord, user_id: str, display_name: str, group_name: str, force: bool = False) -> CashbackRecord:
        payload = {
            "group_name": group_name,
            "category": record.category,
            "bank_name": record.bank_name,
            "user_id": str(user_id),
            "user_display_name": display_name,
            "month_year": record.expiry.strftime(DATE_FORMAT) if record.expiry else "",
            "cashback_percent": record.percent,
            "max_amount": record.cap,
            "force": force,
        }
        logger.info("💾 Сохранение: Bank='%s', Category='%s', Force=%s", record.bank_name, record.category, force)
        data = self._request("POST", CASHBACK_PATH, expected=(200, 201), json=payload)
        return CashbackRecord.from_api(data or {})

    def lookup_record(self, record_id: int) -> CashbackRecord:
        data = self._request("GET", f"{CASHBACK_PATH}/{record_id}")
        return CashbackRecord.from_api(data or {})

    def update_record(self, record_id: int, record: ParsedRecord, group_name: str) -> CashbackRecord:
        payload = {
            "group_name": group_name,
            "category": record.category,
            "bank_name": record.bank_name,
            "month_year": record.expiry.strftime(DATE_FORMAT) if record.expiry else "",
            "cashback_percent": record.percent,
            "max_amount": record.cap,
        }
        data = self._request("PUT", f"{CASHBACK_PATH}/{record_id}", json=payload)
        if data and "id" in data:
            return CashbackRecord.from_api(data)
        return self.lookup_record(record_id)

    def delete_record(self, record_id: int) -> None:
        self._request("DELETE", f"{CASHBACK_PATH}/{record_id}", expected=(200, 204))
        logger.info("🗑️ Удалена запись ID=%s", record_id)

    # --- группы ---

    def get_user_group(self, user_id: str) -> str:
        data = self._request("GET", USER_GROUP_PATH.format(user_id=user_id)) or {}
        group = data.get("group_name")
        if not group:
            raise NotFoundError("пользователь не состоит в группе")
        return group

    def group_exists(self, group_name: str) -> bool:
        data = self._request("GET", GROUPS_CHECK_PATH, params={"group_name": group_name}) or {}
        return bool(data.get("exists"))

    def create_group(self, group_name: str, creator_id: str) -> None:
        self._request(
            "POST",
            GROUPS_PATH,
            expected=(200, 201),
            json={"name": group_name, "creator_id": str(creator_id)},
        )
        logger.info("👥 Создана группа '%s' пользователем %s", group_name, creator_id)

    def join_group(self, user_id: str, group_name: str) -> None:
        self._request(
            "POST",
            GROUPS_MEMBERS_PATH,
            expected=(200, 201),
            json={"user_id": str(user_id), "group_name": group_name},
        )
        logger.info("👥 Пользователь %s присоединился к группе '%s'", user_id, group_name)
