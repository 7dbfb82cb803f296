import hashlib, logging, os, sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class ConfigError(RuntimeError):
    pass


def get_env(name: str, required: bool=True, default: str|None=None) -> str:
    val = os.getenv(name, default)
    if required and not val:
        raise ConfigError(f"Missing environment variable: {name}")
    return val


def env_int(name: str, default: int) -> int:
    return int(os.getenv(name) or default)


def env_float(name: str, default: float) -> float:
    return float(os.getenv(name) or default)


def setup_logging(level: str|None=None) -> None:
    logging.basicConfig(
        level=level or os.getenv("LOG_LEVEL", "INFO"),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


def dedup_key(url: str) -> str:
    """Stable key for an entry: sha1 of its URL, hex encoded."""
    return hashlib.sha1(url.encode('utf-8')).hexdigest()
