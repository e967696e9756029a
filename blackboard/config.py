# blackboard/config.py
import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class Settings:
    # Telegram
    tg_bot_token: str

    # Storage
    data_dir: str
    default_lang: str

    # Item catalog (OAuth client credentials)
    catalog_region: str
    catalog_locale: str
    catalog_client_id: str | None
    catalog_client_secret: str | None
    catalog_namespace_static: str
    catalog_namespace_dynamic: str
    catalog_namespace_media: str
    catalog_timeout_seconds: int
    stack_file: str | None

    # Wizard sessions
    session_idle_seconds: int
    session_sweep_seconds: int

    # Misc
    error_chat_id: int | None
    debug: bool

    @property
    def catalog_enabled(self) -> bool:
        return bool(self.catalog_client_id and self.catalog_client_secret)


def _to_int(value: str | None, default: int | None = None) -> int | None:
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def load_settings() -> Settings:
    load_dotenv()

    tg_bot_token = os.getenv("TG_BOT_TOKEN")
    if not tg_bot_token:
        raise RuntimeError("TG_BOT_TOKEN is not set in the environment or .env")

    region = os.getenv("CATALOG_REGION", "eu")

    return Settings(
        tg_bot_token=tg_bot_token,
        data_dir=os.getenv("DATA_DIR", "data"),
        default_lang=os.getenv("DEFAULT_LANG", "en"),
        catalog_region=region,
        catalog_locale=os.getenv("CATALOG_LOCALE", "en_US"),
        catalog_client_id=os.getenv("CATALOG_CLIENT_ID"),
        catalog_client_secret=os.getenv("CATALOG_CLIENT_SECRET"),
        catalog_namespace_static=os.getenv("CATALOG_NAMESPACE_STATIC", f"static-classic-{region}"),
        catalog_namespace_dynamic=os.getenv("CATALOG_NAMESPACE_DYNAMIC", f"dynamic-classic-{region}"),
        catalog_namespace_media=os.getenv("CATALOG_NAMESPACE_MEDIA", f"static-classic-{region}"),
        catalog_timeout_seconds=_to_int(os.getenv("CATALOG_TIMEOUT_SECONDS"), 10),
        stack_file=os.getenv("STACK_FILE"),
        session_idle_seconds=_to_int(os.getenv("SESSION_IDLE_SECONDS"), 1800),
        session_sweep_seconds=_to_int(os.getenv("SESSION_SWEEP_SECONDS"), 60),
        error_chat_id=_to_int(os.getenv("ERROR_CHAT_ID")),
        debug=os.getenv("DEBUG", "False").lower() == "true",
    )
