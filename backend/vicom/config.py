"""Application configuration. Loads from environment and .env file."""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


# Paths (override with env). Created at startup by storage.init_dirs(), not here.
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "input")))
OUTPUT_DIR = Path(os.getenv("OUTPUT_DIR", str(BASE_DIR / "temp")))

# External tools
FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")
FFPROBE_BIN = os.getenv("FFPROBE_BIN", "ffprobe")
PROBE_TIMEOUT = int(os.getenv("PROBE_TIMEOUT", "60"))
# No encode timeout unless configured: large inputs legitimately take hours.
ENCODE_TIMEOUT = _optional_float("ENCODE_TIMEOUT")
ENCODE_POLL_INTERVAL = float(os.getenv("ENCODE_POLL_INTERVAL", "0.5"))

# Supported formats
INPUT_EXTENSIONS = {".mp4", ".mov", ".mkv", ".webm", ".avi", ".wmv", ".flv", ".m4v"}
VIDEO_EXTENSIONS = {".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v"}
OUTPUT_FORMATS = ["mp4", "webm", "mkv", "av1"]

# Target size presets (name -> ceiling in MB); "custom" has no ceiling
PRESET_CEILINGS_MB = {
    "discord": 10.0,
    "twitter": 15.0,
    "whatsapp": 16.0,
}
DEFAULT_TARGET_SIZE_MB = float(os.getenv("DEFAULT_TARGET_SIZE_MB", "25"))
MIN_TARGET_SIZE_MB = 1.0

# Limits (env). Single/custom-name uploads and batch uploads have independent ceilings.
MAX_SINGLE_FILE_MB = int(os.getenv("MAX_SINGLE_FILE_MB", str(5 * 1024)))
MAX_SINGLE_FILE_BYTES = MAX_SINGLE_FILE_MB * 1024 * 1024
MAX_BATCH_FILE_MB = int(os.getenv("MAX_BATCH_FILE_MB", "500"))
MAX_BATCH_FILE_BYTES = MAX_BATCH_FILE_MB * 1024 * 1024
UPLOAD_CHUNK_BYTES = 1024 * 1024

# Output naming
OUTPUT_NAME_PREFIX = os.getenv("OUTPUT_NAME_PREFIX", "Vicom")
MAX_OUTPUT_BASE_LENGTH = 180

# Background-removal helper (health probe only)
REMBG_PYTHON_BIN = os.getenv("PYTHON_BIN", "/opt/pyenv/bin/python")
REMBG_HELPER = os.getenv("REMBG_HELPER", "/opt/pyenv/bin/rembg_pipe.py")
U2NET_HOME = os.getenv("U2NET_HOME", str(Path.home() / ".u2net"))
REMBG_PROBE_TIMEOUT = int(os.getenv("REMBG_PROBE_TIMEOUT", "15"))

# Server (for uvicorn)
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))
# CORS: comma-separated origins, e.g. "http://localhost:3000,http://127.0.0.1:3000"
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",") if o.strip()]

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("vicom")
