"""
Диалог с ботом из терминала: удобно проверять сценарии без транспорта.

    python scripts/console_chat.py --user 42 --name "Иван"
"""

import argparse
import logging
import os
import sys

from dotenv import load_dotenv

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from config_loader import load_advisor_config
from dispatcher import CashbackAdvisor


def _print_reply(reply):
    print(reply.text)
    for row in reply.keyboard:
        print("  " + " | ".join(f"[{b}]" for b in row))
    print()


def main():
    parser = argparse.ArgumentParser(description="Консольный чат с ботом кэшбэка")
    parser.add_argument("--user", default="console", help="ID пользователя")
    parser.add_argument("--name", default=None, help="Отображаемое имя")
    parser.add_argument("--config", default=None, help="Путь к advisor.yml")
    parser.add_argument("--verbose", action="store_true", help="Печатать логи")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    advisor = CashbackAdvisor.from_config(load_advisor_config(args.config))
    print("💬 Пишите сообщения боту. /quit — выход, пустая строка — отмена текущего шага.\n")
    while True:
        try:
            text = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break
        if text == "/quit":
            break
        if not text:
            _print_reply(advisor.on_cancel(args.user))
            continue
        _print_reply(advisor.on_text(args.user, text, args.name))


if __name__ == "__main__":
    main()
