from pathlib import Path
from dotenv import load_dotenv
import os

load_dotenv()

BASE_DIR = Path(__file__).parent

# Scraped datasets (one sub-directory per station/time window, gitignored)
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Analysis output (one analyze-<timestamp> sub-directory per run)
OUT_DIR = Path(os.getenv("OUT_DIR", str(BASE_DIR / "out")))

# Transfer hub used by through/transfer analysis
HUB_STATION: str = os.getenv("HUB_STATION", "Tanah Abang")

# Data quality thresholds
OVER_THRESHOLD_MINUTES: float = float(os.getenv("OVER_THRESHOLD_MINUTES", "60"))
OUTLIER_MIN_SAMPLES: int = int(os.getenv("OUTLIER_MIN_SAMPLES", "5"))
OUTLIER_Z_THRESHOLD: float = float(os.getenv("OUTLIER_Z_THRESHOLD", "3.0"))

# KRL schedule API
KRL_API_BASE: str = os.getenv("KRL_API_BASE", "https://api-partner.krl.co.id").rstrip("/")
KRL_TOKEN: str = os.getenv("KRL_TOKEN", "")
HTTP_TIMEOUT_SECONDS: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
HTTP_RETRIES: int = int(os.getenv("HTTP_RETRIES", "2"))
FETCH_CONCURRENCY: int = int(os.getenv("FETCH_CONCURRENCY", "10"))

# Scrape defaults
DEFAULT_STATION: str = os.getenv("DEFAULT_STATION", "THB")
DEFAULT_TIME_FROM: str = os.getenv("DEFAULT_TIME_FROM", "00:00")
DEFAULT_TIME_TO: str = os.getenv("DEFAULT_TIME_TO", "23:00")

# API
API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
API_PORT: int = int(os.getenv("API_PORT", "8000"))
INGEST_API_KEY: str = os.getenv("INGEST_API_KEY", "")  # empty → POST /ingest/* is open
CORS_ORIGINS: list[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
