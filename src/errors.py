"""
Иерархия ошибок бота.

При ValidationError пользователь может исправить ввод, состояние диалога сохраняется.
Остальные ошибки завершают текущий шаг диалога.
"""


class AdvisorError(Exception):
    """Базовая ошибка приложения."""

    def __init__(self, detail: str, status_code: int = 500):
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class ValidationError(AdvisorError):
    """Ввод не удалось разобрать или в нём не хватает полей."""

    def __init__(self, detail: str = "Неверный формат данных"):
        super().__init__(detail=detail, status_code=422)


class NotFoundError(AdvisorError):
    """Запись или группа не найдена."""

    def __init__(self, detail: str = "Запись не найдена"):
        super().__init__(detail=detail, status_code=404)


class OwnershipError(AdvisorError):
    """Попытка изменить чужую запись."""

    def __init__(self, detail: str = "Можно изменять только свои записи"):
        super().__init__(detail=detail, status_code=403)


class BackendUnavailableError(AdvisorError):
    """Хранилище или API недоступны либо вернули ошибку."""

    def __init__(self, detail: str = "Сервис временно недоступен"):
        super().__init__(detail=detail, status_code=503)
