from __future__ import annotations

import os
from dataclasses import dataclass

from storefront_checkout.core.domain.model.order import DEFAULT_CURRENCY

_PREFIX = "STOREFRONT_"


@dataclass(frozen=True)
class Settings:
    storage: str = "memory"  # memory | sql
    database_url: str = "sqlite:///storefront.db"
    log_level: str = "INFO"
    currency: str = DEFAULT_CURRENCY
    reconcile_max_attempts: int = 5
    reconcile_batch: int = 100
    host: str = "127.0.0.1"
    port: int = 8000
    seed_demo: bool = True

    @staticmethod
    def from_env() -> "Settings":
        defaults = Settings()
        settings = Settings(
            storage=_env("STORAGE", defaults.storage).lower(),
            database_url=_env("DATABASE_URL", defaults.database_url),
            log_level=_env("LOG_LEVEL", defaults.log_level).upper(),
            currency=_env("CURRENCY", defaults.currency).upper(),
            reconcile_max_attempts=int(
                _env("RECONCILE_MAX_ATTEMPTS", str(defaults.reconcile_max_attempts))
            ),
            reconcile_batch=int(_env("RECONCILE_BATCH", str(defaults.reconcile_batch))),
            host=_env("HOST", defaults.host),
            port=int(_env("PORT", str(defaults.port))),
            seed_demo=_env("SEED_DEMO", "true").lower() in {"1", "true", "yes", "on"},
        )
        if settings.storage not in {"memory", "sql"}:
            raise ValueError(f"{_PREFIX}STORAGE must be 'memory' or 'sql', got {settings.storage!r}")
        if settings.reconcile_max_attempts < 1:
            raise ValueError(f"{_PREFIX}RECONCILE_MAX_ATTEMPTS must be >= 1")
        return settings


def _env(name: str, default: str) -> str:
    return os.environ.get(_PREFIX + name, default)
