from dotenv import load_dotenv

from infrastructure.config import Settings
from infrastructure.logging_setup import configure_logging
from infrastructure.wiring import build_container
from interfaces.discord.handlers import create_discord_bot


load_dotenv()


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    if not settings.discord_token:
        raise RuntimeError("DISCORD_TOKEN environment variable is not set.")

    container = build_container(settings)
    bot = create_discord_bot(container.games, container.accounts)
    # Logging is already configured; stop discord.py installing its own handler.
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
