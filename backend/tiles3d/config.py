"""
Konfiguration über Umgebungsvariablen
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    tileset_root: Path
    max_tileset_depth: int = 16
    max_upload_mb: int = 64
    log_level: str = "INFO"
    frontend_url: Optional[str] = None

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        """Settings aus Umgebungsvariablen"""
        return cls(
            tileset_root=Path(os.getenv("TILESET_ROOT", ".")).resolve(),
            max_tileset_depth=int(os.getenv("MAX_TILESET_DEPTH", "16")),
            max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "64")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            frontend_url=os.getenv("FRONTEND_URL"),
        )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def load_settings(env_file: Optional[Union[str, Path]] = None) -> Settings:
    # .env ergänzt, überschreibt aber keine gesetzten Variablen
    load_dotenv(env_file or Path.cwd() / ".env")
    return Settings.from_env()
