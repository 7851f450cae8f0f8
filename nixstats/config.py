"""
Runtime configuration read from the environment.

`.env.local` and then `.env` in the repository root are loaded first (without
overriding variables already set), so local overrides live next to the code.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .storage import STORAGE_KEY

REPO_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = "~/.local/share/ns"


def load_env_files(root: Path = REPO_ROOT) -> None:
    for name in (".env.local", ".env"):
        load_dotenv(root / name, override=False)


@dataclass
class Settings:
    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR).expanduser())
    storage_key: str = STORAGE_KEY
    api_port: int = 9000
    frontend_port: str = "5173"
    allowed_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "Settings":
        """
        Build settings from `environ` (default: os.environ).

        Raises:
            ValueError: if PYTHON_API_PORT is not an integer
        """
        env = os.environ if environ is None else environ

        frontend_port = env.get("VITE_PORT", "5173")
        origins = env.get(
            "ALLOWED_ORIGINS",
            f"http://localhost:{frontend_port},http://127.0.0.1:{frontend_port}"
        )
        port_raw = env.get("PYTHON_API_PORT", "9000")
        try:
            api_port = int(port_raw)
        except ValueError:
            raise ValueError(f"PYTHON_API_PORT must be an integer, got {port_raw!r}")

        return cls(
            data_dir=Path(env.get("NS_DATA_DIR", DEFAULT_DATA_DIR)).expanduser(),
            storage_key=env.get("NS_STORAGE_KEY", STORAGE_KEY),
            api_port=api_port,
            frontend_port=frontend_port,
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            log_level=env.get("NS_LOG_LEVEL", "INFO").upper(),
        )
