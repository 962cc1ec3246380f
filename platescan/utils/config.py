import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_DIR = Path(
    os.environ.get("PLATESCAN_CONFIG_DIR", str(Path.home() / ".local/share/platescan"))
)
DEFAULT_RECOGNITION_URL = os.environ.get(
    "PLATESCAN_RECOGNITION_URL",
    "https://plate-scanner-server.onrender.com/api/detect-plate",
)
DEFAULT_RECOGNITION_TIMEOUT = float(os.environ.get("PLATESCAN_RECOGNITION_TIMEOUT", "15"))

# Preferred capture device: index ("0"), device path ("/dev/video2") or a name fragment
DEFAULT_DEVICE = os.environ.get("PLATESCAN_DEVICE", "").strip()

# Web status surface
WEB_HOST = os.environ.get("PLATESCAN_WEB_HOST", "0.0.0.0")
WEB_PORT = int(os.environ.get("PLATESCAN_WEB_PORT", "8788"))


@dataclass
class Settings:
    config_dir: Path = DEFAULT_CONFIG_DIR
    device: str = DEFAULT_DEVICE
    recognition_url: str = DEFAULT_RECOGNITION_URL
    recognition_timeout: float = DEFAULT_RECOGNITION_TIMEOUT
    log_level: str = os.environ.get("PLATESCAN_LOGLEVEL", "INFO")
    web_host: str = WEB_HOST
    web_port: int = WEB_PORT
    web_enabled: bool = os.environ.get("PLATESCAN_WEB_ENABLED", "true").lower() == "true"

SETTINGS = Settings()
