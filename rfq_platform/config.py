import os


DEV_SECRET_KEY = "dev-secret-plataforma-rfq"


def _bool_env(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class Config:
    BASE_DIR = os.path.dirname(os.path.dirname(__file__))
    DATABASE_URL = os.environ.get("DATABASE_URL")
    DATABASE_DIR = None if DATABASE_URL else os.path.join(BASE_DIR, "database")
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "plataforma_rfq.db")
    DATABASE_READ_URL = os.environ.get("DATABASE_READ_URL")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", True)

    SECRET_KEY = os.environ.get("SECRET_KEY", DEV_SECRET_KEY)
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)
    RATE_LIMIT_MAX_REQUESTS = _int_env("RATE_LIMIT_MAX_REQUESTS", 300)
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)

    RFQ_NUMBER_PREFIX = os.environ.get("RFQ_NUMBER_PREFIX", "RFQ")
    RFQ_WRITE_MAX_ATTEMPTS = _int_env("RFQ_WRITE_MAX_ATTEMPTS", 3)
    RFQ_LIST_MAX_LIMIT = _int_env("RFQ_LIST_MAX_LIMIT", 100)

    EXPIRY_SWEEP_ENABLED = _bool_env("EXPIRY_SWEEP_ENABLED", True)
    EXPIRY_SWEEP_INTERVAL_SECONDS = _int_env("EXPIRY_SWEEP_INTERVAL_SECONDS", 300)
    EXPIRY_SWEEP_BATCH_LIMIT = _int_env("EXPIRY_SWEEP_BATCH_LIMIT", 200)

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL nao definida para ambiente de producao.")
        if env == "production" and self.SECRET_KEY == DEV_SECRET_KEY:
            raise RuntimeError("SECRET_KEY insegura para producao.")
