"""
Environment configuration and logging setup for the command-line tools.

Convention used throughout this repo:
- .env in the working directory, then env.local next to the repo root
- variables already set in the environment always win
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import dotenv

DEFAULT_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _repo_root() -> Path:
    # This module lives in gltf_modules/, so repo root is one level up.
    return Path(__file__).resolve().parent.parent


@dataclass
class Settings:
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT


def load_settings(load_env_files: bool = True) -> Settings:
    if load_env_files:
        dotenv.load_dotenv()
        dotenv.load_dotenv(dotenv_path=_repo_root() / "env.local", override=False)

    return Settings(
        log_level=(os.getenv("gltf_log_level") or "INFO").upper(),
        log_format=os.getenv("gltf_log_format") or DEFAULT_LOG_FORMAT,
    )


def configure_logging(settings: Settings, level_override: Optional[str] = None) -> None:
    level_name = (level_override or settings.log_level).upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=settings.log_format)
