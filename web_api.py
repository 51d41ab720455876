from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from authcore.api.app_factory import build_app
from authcore.auth.repository import build_repositories
from authcore.core.config import AppConfig
from authcore.core.logging import setup_logging
from authcore.core.mongo_migrations import apply_mongo_migrations

load_dotenv()
APP_CONFIG = AppConfig.from_env()
setup_logging(APP_CONFIG.logging.level)
LOGGER = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent


def create_app() -> FastAPI:
    apply_mongo_migrations(APP_CONFIG.storage)
    repositories = build_repositories(APP_CONFIG.storage, app_root=APP_ROOT)
    return build_app(APP_CONFIG, repositories, logger=LOGGER)


app = create_app()
