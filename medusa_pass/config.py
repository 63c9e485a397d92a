"""
Proxy configuration. Loaded once at startup from an INI file (medusa-pass.ini),
with MEDUSA_PASS_<KEY> environment variables taking precedence.
Keys are case-insensitive and may sit above any section header.
"""
import configparser
import math
import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_FILE = "medusa-pass.ini"
ENV_PREFIX = "MEDUSA_PASS_"

# EVE Online SSO (v1 endpoints: /oauth/token, /oauth/verify)
DEFAULT_SSO_BASE_URL = "https://login.eveonline.com"
DEFAULT_USER_AGENT = "medusa-pass/0.1.0"
DEFAULT_ADDR = ":8080"
DEFAULT_DB_URL = "sqlite:///./medusa-pass.db"
DEFAULT_HTTP_TIMEOUT = 10.0
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

# Cross-origin policy: any origin, credentials allowed, preflight cached 12 hours
CORS_ALLOW_HEADERS = ["Origin", "Authorization", "Content-Type"]
CORS_EXPOSE_HEADERS = ["Content-Length"]
CORS_MAX_AGE = 12 * 60 * 60


class ConfigError(Exception):
    """Configuration is missing or invalid; the process must not start."""


@dataclass(frozen=True)
class Settings:
    client_id: str
    secret_key: str
    user_agent: str = DEFAULT_USER_AGENT
    addr: str = DEFAULT_ADDR
    database_url: str = DEFAULT_DB_URL
    sso_base_url: str = DEFAULT_SSO_BASE_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    log_level: str = "INFO"

    def listen_address(self) -> tuple[str, int]:
        """Split ADDR ("host:port" or gin-style ":port") into (host, port)."""
        return parse_addr(self.addr)


def parse_addr(addr: str) -> tuple[str, int]:
    host, sep, port = addr.strip().rpartition(":")
    if not sep:
        raise ConfigError(f"ADDR must be host:port or :port, got {addr!r}")
    try:
        port_num = int(port)
    except ValueError:
        raise ConfigError(f"ADDR port is not a number: {addr!r}") from None
    if not 0 < port_num < 65536:
        raise ConfigError(f"ADDR port out of range: {addr!r}")
    return host or "0.0.0.0", port_num


def database_url_from(dialect: str, params: str) -> str:
    """
    Build a SQLAlchemy URL from the DB_DIALECT / DB_PARAMS pair.
    sqlite and sqlite3 take a file path (or :memory:); other dialects take the
    part of the URL after "dialect://".
    """
    dialect = dialect.strip().lower()
    params = params.strip()
    if dialect in ("sqlite", "sqlite3"):
        return f"sqlite:///{params or ':memory:'}"
    if not params:
        raise ConfigError(f"DB_PARAMS is required for dialect {dialect!r}")
    # SQLAlchemy only knows the long name
    if dialect == "postgres":
        dialect = "postgresql"
    return f"{dialect}://{params}"


def _read_ini(path: Path) -> dict[str, str]:
    parser = configparser.ConfigParser(interpolation=None)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    try:
        # Keys above the first section header land in a synthetic leading section
        parser.read_string("[__top__]\n" + text, source=str(path))
    except configparser.Error as e:
        raise ConfigError(f"Malformed config file {path}: {e}") from e
    values: dict[str, str] = {}
    for section in parser.sections():
        for key, value in parser.items(section):
            values.setdefault(key.lower(), value)
    return values


def _read_env(environ) -> dict[str, str]:
    return {
        key[len(ENV_PREFIX):].lower(): value
        for key, value in environ.items()
        if key.upper().startswith(ENV_PREFIX) and key.upper() != ENV_PREFIX + "CONFIG"
    }


def load_settings(path: str | None = None, environ=None) -> Settings:
    """
    Read the INI file (optional when every required key comes from the environment)
    and overlay environment variables. Raises ConfigError on missing or bad values.
    """
    environ = os.environ if environ is None else environ
    values: dict[str, str] = {}
    # MEDUSA_PASS_CONFIG is read per call so it can be set after import
    explicit = path or environ.get(ENV_PREFIX + "CONFIG")
    p = Path(explicit or DEFAULT_CONFIG_FILE)
    if p.exists():
        values.update(_read_ini(p))
    elif explicit:
        raise ConfigError(f"Config file not found: {p}")
    values.update(_read_env(environ))

    missing = [k.upper() for k in ("client_id", "secret_key") if not values.get(k, "").strip()]
    if missing:
        raise ConfigError(f"Missing required config keys: {', '.join(missing)}")

    if values.get("db_url", "").strip():
        database_url = values["db_url"].strip()
    elif values.get("db_dialect", "").strip():
        database_url = database_url_from(values["db_dialect"], values.get("db_params", ""))
    else:
        database_url = DEFAULT_DB_URL

    try:
        http_timeout = float(values.get("http_timeout") or DEFAULT_HTTP_TIMEOUT)
    except ValueError:
        raise ConfigError(f"HTTP_TIMEOUT is not a number: {values['http_timeout']!r}") from None
    if not math.isfinite(http_timeout) or http_timeout <= 0:
        raise ConfigError(f"HTTP_TIMEOUT must be a positive finite number, got {http_timeout!r}")

    log_level = (values.get("log_level", "").strip() or "INFO").upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    settings = Settings(
        client_id=values["client_id"].strip(),
        secret_key=values["secret_key"].strip(),
        user_agent=values.get("user_agent", "").strip() or DEFAULT_USER_AGENT,
        addr=values.get("addr", "").strip() or DEFAULT_ADDR,
        database_url=database_url,
        sso_base_url=(values.get("sso_base_url", "").strip() or DEFAULT_SSO_BASE_URL).rstrip("/"),
        http_timeout=http_timeout,
        log_level=log_level,
    )
    # Fail at startup rather than when uvicorn binds
    settings.listen_address()
    return settings
