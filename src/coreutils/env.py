from dotenv import load_dotenv
import os

from .errors import ConfigurationError

load_dotenv()  # take environment variables from .env

TRUE_VALUES = {"1", "true", "yes", "on"}
FALSE_VALUES = {"0", "false", "no", "off"}


def env_get(key: str, default: str | None = None) -> str | None:
    """Get environment variable or return default."""
    return os.getenv(key, default)


def env_int(key: str, default: int) -> int:
    """Get an integer environment variable or return default."""
    value = env_get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}", key=key)


def env_float(key: str, default: float) -> float:
    """Get a float environment variable or return default."""
    value = env_get(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {value!r}", key=key)


def env_bool(key: str, default: bool = False) -> bool:
    """Get a boolean environment variable or return default."""
    value = env_get(key)
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in TRUE_VALUES:
        return True
    if normalized in FALSE_VALUES:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}", key=key)
