import uvicorn
from dotenv import load_dotenv

from infrastructure.config import Settings
from infrastructure.logging_setup import configure_logging
from infrastructure.wiring import build_container
from interfaces.http.routes import create_web_app


load_dotenv()


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    container = build_container(settings)
    mirror_sync = None
    if settings.mirror_enabled and settings.kicklet_sync_seconds > 0:
        mirror_sync = container.ledger.sync_all
    app = create_web_app(
        container.games,
        container.accounts,
        mirror_sync=mirror_sync,
        sync_seconds=settings.kicklet_sync_seconds,
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
