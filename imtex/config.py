# imtex/config.py
# -*- coding: utf-8 -*-
"""
Runtime configuration.

The environment (and .env in the project root) is read once by
load_settings(); everything below the HTTP layer receives the resulting
Settings object explicitly.
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

DOCUMENT_TYPE_HINTS = ("auto", "equation", "table", "resume", "general")


@dataclass(frozen=True)
class Settings:
    mistral_api_key: Optional[str] = None
    mistral_ocr_model: str = "mistral-ocr-latest"
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_fallback_model: str = "gemini-2.5-pro"
    enable_pandoc: bool = True
    pandoc_path: str = "pandoc"
    request_timeout: float = 60.0
    log_level: str = "INFO"

    @property
    def llm_enabled(self) -> bool:
        return bool(self.gemini_api_key)


def _flag(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from `env` (defaults to os.environ after loading .env)."""
    if env is None:
        load_dotenv()
        env = os.environ

    return Settings(
        mistral_api_key=env.get("MISTRAL_API_KEY") or None,
        mistral_ocr_model=env.get("MISTRAL_OCR_MODEL", "mistral-ocr-latest"),
        gemini_api_key=env.get("GEMINI_API_KEY") or None,
        gemini_model=env.get("GEMINI_MODEL", "gemini-2.5-flash"),
        gemini_fallback_model=env.get("GEMINI_FALLBACK_MODEL", "gemini-2.5-pro"),
        enable_pandoc=_flag(env.get("ENABLE_PANDOC"), True),
        pandoc_path=env.get("PANDOC_PATH", "pandoc"),
        request_timeout=float(env.get("REQUEST_TIMEOUT", "60")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
