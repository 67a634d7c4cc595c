import json
import os
from types import MappingProxyType

from .logger import logger


def _load_dotenv():
    root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir, os.pardir))
    dotenv_path = os.path.join(root_dir, ".env")
    if not os.path.isfile(dotenv_path):
        return
    try:
        with open(dotenv_path, "r", encoding="utf-8") as handle:
            for line in handle:
                stripped = line.strip()
                if not stripped or stripped.startswith("#"):
                    continue
                if stripped.startswith("export "):
                    stripped = stripped[7:].strip()
                if "=" not in stripped:
                    logger.warning("Skipping invalid .env line: %s", stripped)
                    continue
                key, value = stripped.split("=", 1)
                key = key.strip()
                value = value.strip()
                if not key:
                    continue
                if len(value) >= 2 and value[0] == value[-1] and value[0] in {"\"", "'"}:
                    value = value[1:-1]
                os.environ.setdefault(key, value)
    except OSError as exc:
        logger.warning("Failed to load .env file %s: %s", dotenv_path, exc)


def _bool_env(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _int_env(name, default):
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        logger.warning("Invalid integer in %s, using %s.", name, default)
        return default


def _json_env(name, default):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Invalid JSON in %s, using default.", name)
        return default


def _list_env(name, default):
    raw = os.getenv(name)
    if not raw:
        return tuple(default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


def _normalize_base_url(base_url):
    return base_url.rstrip("/")


_load_dotenv()

CODEBUDDY_BASE_URL = _normalize_base_url(
    os.getenv("CODEBUDDY_BASE_URL", "https://www.codebuddy.ai/v2")
)
CODEBUDDY_TIMEOUT = float(os.getenv("CODEBUDDY_TIMEOUT", "120"))
CODEBUDDY_MAX_RETRIES = _int_env("CODEBUDDY_MAX_RETRIES", 0)
CODEBUDDY_USER_AGENT = os.getenv("CODEBUDDY_USER_AGENT", "CodeBuddyIDE/0.2.2")

PROXY_HOST = os.getenv("PROXY_HOST", "0.0.0.0")
PROXY_PORT = _int_env("PORT", 8000)
PROXY_CREDENTIAL_HEADERS = _list_env("PROXY_CREDENTIAL_HEADERS", ("Authorization", "x-api-key"))
PROXY_DEFAULT_SYSTEM_PROMPT = os.getenv("PROXY_DEFAULT_SYSTEM_PROMPT", "You are a helpful assistant.")
PROXY_FALLBACK_MODEL = os.getenv("PROXY_FALLBACK_MODEL", "gpt-3.5-turbo")

LOG_TOOL_CALLS = _bool_env("PROXY_LOG_TOOL_CALLS", False)
LOG_MAX_CHARS = _int_env("PROXY_LOG_MAX_CHARS", 2000)
LOG_PAYLOADS = _bool_env("PROXY_LOG_PAYLOADS", False)
LOG_PAYLOAD_MAX_CHARS = _int_env("PROXY_LOG_PAYLOAD_MAX_CHARS", 4000)
LOG_STREAM_EVENTS = _bool_env("PROXY_LOG_STREAM_EVENTS", False)

OPENAI_PARAM_DEFAULTS = _json_env("OPENAI_PARAM_DEFAULTS", {})
OPENAI_PARAM_OVERRIDES = _json_env("OPENAI_PARAM_OVERRIDES", {})
OPENAI_PARAM_DROP = {
    key.strip()
    for key in os.getenv("OPENAI_PARAM_DROP", "").split(",")
    if key.strip()
}

_DEFAULT_MODEL_MAPPING = {
    "claude-4.0": "default-model",
}

_DEFAULT_MODEL_CATALOG = [
    {"id": "claude-4.0", "owned_by": "anthropic"},
    {"id": "gemini-2.5-pro", "owned_by": "google"},
    {"id": "gemini-2.5-flash", "owned_by": "google"},
    {"id": "gpt-5", "owned_by": "openai"},
    {"id": "gpt-5-nano", "owned_by": "openai"},
    {"id": "gpt-5-mini", "owned_by": "openai"},
    {"id": "o4-mini", "owned_by": "openai"},
]

_MODEL_CREATED = 1677610602


def _build_model_mapping():
    mapping = dict(_DEFAULT_MODEL_MAPPING)
    extra = _json_env("PROXY_MODEL_MAPPING", {})
    if isinstance(extra, dict):
        mapping.update({str(key): str(value) for key, value in extra.items()})
    else:
        logger.warning("PROXY_MODEL_MAPPING must be a JSON object, ignoring.")
    return MappingProxyType(mapping)


def _build_model_catalog():
    entries = _json_env("PROXY_MODEL_CATALOG", _DEFAULT_MODEL_CATALOG)
    if not isinstance(entries, list):
        logger.warning("PROXY_MODEL_CATALOG must be a JSON array, using default.")
        entries = _DEFAULT_MODEL_CATALOG
    catalog = []
    for entry in entries:
        if isinstance(entry, str):
            entry = {"id": entry}
        if not isinstance(entry, dict) or not entry.get("id"):
            continue
        catalog.append(
            MappingProxyType(
                {
                    "id": entry["id"],
                    "object": "model",
                    "created": entry.get("created", _MODEL_CREATED),
                    "owned_by": entry.get("owned_by", "codebuddy"),
                }
            )
        )
    return tuple(catalog)


MODEL_MAPPING = _build_model_mapping()
MODEL_CATALOG = _build_model_catalog()
