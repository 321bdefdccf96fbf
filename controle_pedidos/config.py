import os


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
    DB_PATH = DATABASE_URL or os.path.join(DATABASE_DIR, "controle_pedidos.db")
    DB_AUTO_INIT = _bool_env("DB_AUTO_INIT", False)

    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-controle-pedidos")
    AUTH_ENABLED = _bool_env("AUTH_ENABLED", True)
    DEFAULT_ADMIN_EMAIL = os.environ.get("DEFAULT_ADMIN_EMAIL", "admin@sistema.com")
    DEFAULT_ADMIN_PASSWORD = os.environ.get("DEFAULT_ADMIN_PASSWORD", "admin123")
    DEFAULT_ADMIN_NAME = os.environ.get("DEFAULT_ADMIN_NAME", "Administrador")

    EDIT_LEASE_SECONDS = _int_env("EDIT_LEASE_SECONDS", 900)

    LOG_JSON = _bool_env("LOG_JSON", True)
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    RATE_LIMIT_ENABLED = _bool_env("RATE_LIMIT_ENABLED", True)
    RATE_LIMIT_WINDOW_SECONDS = _int_env("RATE_LIMIT_WINDOW_SECONDS", 60)
    RATE_LIMIT_MAX_REQUESTS = _int_env("RATE_LIMIT_MAX_REQUESTS", 300)
    LOGIN_RATE_LIMIT_MAX_REQUESTS = _int_env("LOGIN_RATE_LIMIT_MAX_REQUESTS", 10)
    SECURITY_HEADERS_ENABLED = _bool_env("SECURITY_HEADERS_ENABLED", True)

    CSV_MAX_BYTES = _int_env("CSV_MAX_BYTES", 2 * 1024 * 1024)
    LOGO_MAX_BYTES = _int_env("LOGO_MAX_BYTES", 512 * 1024)

    QUOTE_COMPANY_NAME = os.environ.get("QUOTE_COMPANY_NAME", "Carmens Medicinals")
    QUOTE_COMPANY_ADDRESS = os.environ.get("QUOTE_COMPANY_ADDRESS", "1241 Stirling rd UNIT 101")
    QUOTE_COMPANY_CITY = os.environ.get("QUOTE_COMPANY_CITY", "Dania Beach, Florida - USA, 33004")
    QUOTE_COMPANY_PHONE = os.environ.get("QUOTE_COMPANY_PHONE", "")
    QUOTE_COMPANY_EMAIL = os.environ.get("QUOTE_COMPANY_EMAIL", "")

    def __init__(self):
        env = os.environ.get("FLASK_ENV", "development").lower()
        if env == "production" and not self.DATABASE_URL:
            raise RuntimeError("DATABASE_URL nao definida para ambiente de producao.")
        if env == "production" and self.SECRET_KEY == "dev-secret-controle-pedidos":
            raise RuntimeError("SECRET_KEY insegura para producao.")
