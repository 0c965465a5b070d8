from src.app import SummaryBot
from src.core import get_settings


def main() -> None:
    settings = get_settings()
    bot = SummaryBot(settings)
    bot.run_polling()


if __name__ == "__main__":
    main()
