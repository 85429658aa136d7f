"""
HTTP-адаптер для транспорта сообщений.

Транспорт (например, Telegram-шлюз) пересылает сюда текст пользователя и
отправляет обратно полученный ответ с клавиатурой.
"""

import logging

from flask import Flask, request, jsonify

from dispatcher import CashbackAdvisor
from errors import AdvisorError


logger = logging.getLogger(__name__)


def _bad_request(details: str):
    return jsonify({"error": "bad request", "details": details}), 400


def create_app(advisor: CashbackAdvisor) -> Flask:
    app = Flask(__name__)

    @app.errorhandler(AdvisorError)
    def handle_advisor_error(exc: AdvisorError):
        logger.error("❌ Необработанная ошибка: %s", exc.detail)
        return jsonify({"error": type(exc).__name__, "details": exc.detail}), exc.status_code

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({"status": "ok"})

    @app.route('/messages', methods=['POST'])
    def handle_message():
        """Очередное сообщение пользователя."""
        payload = request.get_json(silent=True) or {}
        user_id = payload.get("user_id")
        if user_id in (None, ""):
            return _bad_request("user_id is required")
        text = payload.get("text")
        if not isinstance(text, str):
            return _bad_request("text must be a string")

        reply = advisor.on_text(user_id, text, payload.get("display_name"))
        return jsonify(reply.to_dict())

    @app.route('/cancel', methods=['POST'])
    def handle_cancel():
        payload = request.get_json(silent=True) or {}
        user_id = payload.get("user_id")
        if user_id in (None, ""):
            return _bad_request("user_id is required")
        return jsonify(advisor.on_cancel(user_id).to_dict())

    return app
