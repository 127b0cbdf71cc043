from __future__ import annotations

from storefront_checkout.adapters.inbound.web.fastapi_app import create_app
from storefront_checkout.bootstrap import build_usecases, configure_logging
from storefront_checkout.config import Settings

settings = Settings.from_env()
configure_logging(settings.log_level)
app = create_app(build_usecases(settings))
