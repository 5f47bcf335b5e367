from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .errors import GFSBoxError


class ConfigError(GFSBoxError):
    pass


class Settings(BaseModel):
    # Field
    default_poly: int = Field(default=0x11B, ge=0x100, le=0x1FF)

    # Output
    output_dir: str = Field(default=".")
    sbox_filename: str = Field(default="AESsbox.txt")
    random_sbox_filename: str = Field(default="randomsbox.txt")

    # Service
    max_concurrent_jobs: int = Field(default=2, ge=1)
    worker_threads: int = Field(default=4, ge=1)
    max_upload_kb: int = Field(default=64, ge=1)
    log_level: str = Field(default="INFO")


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    # Load .env if present
    load_dotenv()

    # GFSBOX_DEFAULT_POLY is hex with or without the 0x prefix, like the CLI prompt
    try:
        return Settings(
            default_poly=int(os.getenv("GFSBOX_DEFAULT_POLY", "0x11B").strip(), 16),
            output_dir=os.getenv("GFSBOX_OUTPUT_DIR", "."),
            sbox_filename=os.getenv("GFSBOX_SBOX_FILENAME", "AESsbox.txt"),
            random_sbox_filename=os.getenv("GFSBOX_RANDOM_SBOX_FILENAME", "randomsbox.txt"),
            max_concurrent_jobs=int(os.getenv("GFSBOX_MAX_CONCURRENT_JOBS", "2")),
            worker_threads=int(os.getenv("GFSBOX_WORKER_THREADS", "4")),
            max_upload_kb=int(os.getenv("GFSBOX_MAX_UPLOAD_KB", "64")),
            log_level=os.getenv("GFSBOX_LOG_LEVEL", "INFO").upper(),
        )
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        raise ConfigError(f"Invalid GFSBOX_* environment setting: {e}") from e
