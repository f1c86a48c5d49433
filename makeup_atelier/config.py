"""
Configuration module for the Makeup Atelier API
Contains logger setup and environment variables
"""

import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


# -------------------------
# Logger Setup
# -------------------------
def setup_logger(
    name: str = __name__, log_file: str | None = "makeup_atelier.log"
) -> logging.Logger:
    """
    Set up and return a logger with both file and console handlers

    Args:
        name: Logger name (usually __name__)
        log_file: Path to log file, or None to log to the console only

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logging.getLogger(__name__).warning(
            f"Ignoring non-integer value for {name}, using {default}"
        )
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


LOG_FILE = os.getenv("LOG_FILE", "makeup_atelier.log") or None

# Create the main application logger
logger = setup_logger("makeup_atelier", LOG_FILE)

# -------------------------
# Environment Variables
# -------------------------

# image providers
IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "replicate").strip().lower()
REPLICATE_API_TOKEN = os.getenv("REPLICATE_API_TOKEN")
GEMINI_KEY = os.getenv("GEMINI_KEY")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GENERATION_TIMEOUT_SECONDS = float(_env_int("GENERATION_TIMEOUT_SECONDS", 55))

# supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

# daily quotas (per UTC day)
USER_DAILY_TRYON_LIMIT = _env_int("USER_DAILY_TRYON_LIMIT", 4)
ANON_DAILY_TRYON_LIMIT = _env_int("ANON_DAILY_TRYON_LIMIT", 3)

# in-memory IP throttle
IP_RATE_WINDOW_SECONDS = _env_int("IP_RATE_WINDOW_SECONDS", 60 * 60)
IP_RATE_LIMIT_USER = _env_int("IP_RATE_LIMIT_USER", 20)
IP_RATE_LIMIT_ANON = _env_int("IP_RATE_LIMIT_ANON", 5)

# anonymous identity cookie
COOKIE_SECURE = _env_bool("COOKIE_SECURE", default=bool(os.getenv("VERCEL")))

# stripe
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
PUBLIC_URL = os.getenv("PUBLIC_URL", "https://lippstick.vercel.app").rstrip("/")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]


# Log configuration status
logger.info("Configuration loaded successfully")
logger.debug(f"IMAGE_PROVIDER: {IMAGE_PROVIDER}")
logger.debug(f"REPLICATE_API_TOKEN configured: {bool(REPLICATE_API_TOKEN)}")
logger.debug(f"GEMINI_KEY configured: {bool(GEMINI_KEY)}")
logger.debug(f"OPENAI_API_KEY configured: {bool(OPENAI_API_KEY)}")
logger.debug(f"SUPABASE_URL configured: {bool(SUPABASE_URL)}")
logger.debug(f"SUPABASE_SERVICE_KEY configured: {bool(SUPABASE_SERVICE_KEY)}")
logger.debug(f"STRIPE_SECRET_KEY configured: {bool(STRIPE_SECRET_KEY)}")
logger.debug(f"STRIPE_WEBHOOK_SECRET configured: {bool(STRIPE_WEBHOOK_SECRET)}")
logger.debug(
    f"Daily limits: user={USER_DAILY_TRYON_LIMIT} anon={ANON_DAILY_TRYON_LIMIT}"
)
