"""
Shared configuration and helpers for the gateway.
"""

import logging
import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent

# On a persistent volume, point TOOLGATE_DATA_DIR at it; locally use .tmp/
_data_dir = os.getenv("TOOLGATE_DATA_DIR")
TMP_DIR = Path(_data_dir) if _data_dir else PROJECT_ROOT / ".tmp"

# Upstream endpoints
TOKEN_ISSUER_URL = os.getenv("TOKEN_ISSUER_URL", "https://jwt.aquataze.com/")
UPLOADER_URL = os.getenv("UPLOADER_URL", "https://gdrive.aquataze.com/")
IP_LOOKUP_URL = os.getenv("IP_LOOKUP_URL", "https://ipapi.co/{ip}/json/")

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "15"))

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_env(key: str, default: str = None) -> str:
    """Get environment variable with optional default."""
    value = os.getenv(key, default)
    if value is None:
        raise ValueError(f"Environment variable {key} not set")
    return value


def ensure_data_dir() -> Path:
    """Create the data directory on first use and return it."""
    TMP_DIR.mkdir(parents=True, exist_ok=True)
    return TMP_DIR


def default_db_uri() -> str:
    """Database location, overridable with GATEWAY_DB_URI."""
    uri = os.getenv("GATEWAY_DB_URI")
    if uri:
        return uri
    return str(ensure_data_dir() / "toolgate.db")


def default_token_file() -> Path:
    """Token file location, overridable with TOKEN_FILE_PATH."""
    path = os.getenv("TOKEN_FILE_PATH")
    if path:
        return Path(path)
    return ensure_data_dir() / "token.json"


def configure_logging(level: str = "INFO"):
    """Install a single stream handler on the root logger."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)
