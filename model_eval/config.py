import os
from typing import Optional


_TRUTHY = ("1", "true", "yes", "on")


def _env_str(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _env_bool(name: str, default: bool = False) -> bool:
    raw = _env_str(name)
    if not raw:
        return default
    return raw.lower() in _TRUTHY


def _env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    try:
        value = int(_env_str(name) or default)
    except ValueError:
        value = default
    if minimum is not None and value < minimum:
        value = minimum
    return value


def log_level_name() -> str:
    return (_env_str("LOG_LEVEL", "INFO") or "INFO").upper()


def default_parallelism() -> int:
    return _env_int("EVAL_DEFAULT_PARALLELISM", 3, minimum=1)


def default_timeout_ms() -> int:
    return _env_int("EVAL_DEFAULT_TIMEOUT_MS", 30000, minimum=1)


def default_retries() -> int:
    return _env_int("EVAL_DEFAULT_RETRIES", 1, minimum=0)


def retry_backoff_ms() -> int:
    return _env_int("EVAL_RETRY_BACKOFF_MS", 0, minimum=0)


def benchmarks_dir() -> Optional[str]:
    return _env_str("EVAL_BENCHMARKS_DIR") or None


def builtin_benchmarks_enabled() -> bool:
    return _env_bool("EVAL_BUILTIN_BENCHMARKS", True)


# Provider name -> environment variable holding its API key
PROVIDER_API_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "google": "GOOGLE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "cohere": "COHERE_API_KEY",
    "huggingface": "HUGGINGFACE_API_KEY",
}


def provider_api_key(provider: str) -> str:
    env_name = PROVIDER_API_KEY_ENV.get((provider or "").lower())
    if not env_name:
        return ""
    return _env_str(env_name)
