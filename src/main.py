import logging
import os

from dotenv import load_dotenv

from config_loader import load_advisor_config
from dispatcher import CashbackAdvisor
from webhook import create_app

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)


def main():
    cfg = load_advisor_config()
    advisor = CashbackAdvisor.from_config(cfg)
    app = create_app(advisor)

    host = os.getenv("ADVISOR_HOST", "0.0.0.0")
    port = int(os.getenv("ADVISOR_PORT", "8090"))
    debug = os.getenv("ADVISOR_DEBUG", "").lower() in ("1", "true", "yes")

    logger.info("🚀 Бот запущен: API=%s, состояние=%s", cfg["api"]["base_url"], cfg["state"]["backend"])
    # каждый запрос в своём потоке, ходы одного пользователя упорядочивает его замок
    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
