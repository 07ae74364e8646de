import logging
import os
from dataclasses import dataclass
from typing import Optional

# logger.py depends on this module, so warnings here go through plain logging
_log = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        _log.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        _log.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


@dataclass(frozen=True)
class Settings:
    """
    Runtime configuration, read once from the environment.

    Fields:
      - db_path: sqlite file backing the data store
      - storage_path: json file used as local key/value storage (cart & session mirrors)
      - tax_rate: surcharge applied on top of the cart subtotal at checkout
      - page_size: rows per page on the admin order table
      - debug: verbose logging
      - log_file: when set, logs go to this file instead of stderr
      - assistant_url: endpoint of the shopping assistant; unset disables it
      - assistant_api_key: key sent with every assistant request
      - assistant_timeout: seconds to wait for an assistant answer
    """

    db_path: str = "data/storefront.sqlite"
    storage_path: str = "data/local_storage.json"
    tax_rate: float = 0.10
    page_size: int = 10
    debug: bool = False
    log_file: Optional[str] = None
    assistant_url: Optional[str] = None
    assistant_api_key: Optional[str] = None
    assistant_timeout: float = 30.0


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        db_path=os.getenv("STOREFRONT_DB_PATH") or defaults.db_path,
        storage_path=os.getenv("STOREFRONT_STORAGE_PATH") or defaults.storage_path,
        tax_rate=_env_float("STOREFRONT_TAX_RATE", defaults.tax_rate),
        page_size=max(_env_int("STOREFRONT_PAGE_SIZE", defaults.page_size), 1),
        debug=bool(os.getenv("STOREFRONT_DEBUG") or os.getenv("DEBUG")),
        log_file=os.getenv("STOREFRONT_LOG_FILE") or None,
        assistant_url=os.getenv("STOREFRONT_ASSISTANT_URL") or None,
        assistant_api_key=os.getenv("STOREFRONT_ASSISTANT_API_KEY") or None,
        assistant_timeout=_env_float("STOREFRONT_ASSISTANT_TIMEOUT", defaults.assistant_timeout),
    )


settings = load_settings()
