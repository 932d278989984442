# catalogo/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional


def _sanitize_base_url(raw: Optional[str], fallback: str = "http://localhost:8000") -> str:
    raw = (raw or "").strip()
    if not raw.startswith(("http://", "https://")):
        return fallback
    return raw.rstrip("/")


def _split_csv(raw: Optional[str]) -> List[str]:
    return [p.strip() for p in (raw or "").split(",") if p.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./catalogo.db"
    storage_backend: str = "local"          # 'local' | 'supabase'
    supabase_url: str = ""
    supabase_key: str = ""
    bucket: str = "catalogo"
    media_dir: str = "./media"
    public_base_url: str = "http://localhost:8000"
    api_base_url: str = "http://localhost:8000"
    http_timeout: float = 25.0
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


def load_settings() -> Settings:
    public = _sanitize_base_url(os.getenv("PUBLIC_BASE_URL"))
    try:
        timeout = float(os.getenv("HTTP_TIMEOUT", "25"))
    except ValueError:
        timeout = 25.0
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./catalogo.db"),
        storage_backend=(os.getenv("STORAGE_BACKEND") or "local").strip().lower(),
        supabase_url=_sanitize_base_url(os.getenv("SUPABASE_URL"), fallback=""),
        supabase_key=os.getenv("SUPABASE_KEY", ""),
        bucket=os.getenv("STORAGE_BUCKET", "catalogo"),
        media_dir=os.path.abspath(os.getenv("MEDIA_DIR", "./media")),
        public_base_url=public,
        api_base_url=_sanitize_base_url(os.getenv("API_BASE_URL"), fallback=public),
        http_timeout=timeout,
        cors_origins=_split_csv(os.getenv("CORS_ORIGINS")) or ["*"],
        log_level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
