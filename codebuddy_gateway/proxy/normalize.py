import json

from .config import (
    MODEL_MAPPING,
    OPENAI_PARAM_DEFAULTS,
    OPENAI_PARAM_DROP,
    OPENAI_PARAM_OVERRIDES,
    PROXY_DEFAULT_SYSTEM_PROMPT,
)
from .logger import logger


def _text_block(text):
    return {"type": "text", "text": text}


def _default_system_message():
    return {"role": "system", "content": [_text_block(PROXY_DEFAULT_SYSTEM_PROMPT)]}


def _normalize_content_blocks(blocks):
    valid = []
    for block in blocks:
        if not isinstance(block, dict) or block.get("type") != "text":
            continue
        text = block.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        valid.append({**block, "text": text.strip()})
    return valid


def _normalize_message(message):
    """Return the canonical form of one message, or None when it must be dropped."""
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not content and not message.get("role"):
        return None

    if isinstance(content, str):
        text = content.strip()
        if not text:
            return None
        return {**message, "content": [_text_block(text)]}

    if isinstance(content, (list, tuple)):
        blocks = _normalize_content_blocks(content)
        if not blocks:
            return None
        return {**message, "content": blocks}

    return None


def _normalize_chat_messages(messages):
    """Repair client messages into non-empty lists of trimmed text blocks.

    Malformed entries are dropped rather than rejected. A lone non-system
    message gets a default system message in front of it, since the upstream
    expects some system context for single-turn requests.
    """
    if not isinstance(messages, (list, tuple)):
        return []

    fixed = []
    for message in messages:
        normalized = _normalize_message(message)
        if normalized is None:
            continue
        fixed.append(normalized)

    dropped = len(messages) - len(fixed)
    if dropped:
        logger.debug("Dropped %s message(s) without usable text content.", dropped)

    if len(fixed) == 1 and fixed[0].get("role") != "system":
        return [_default_system_message(), *fixed]
    return fixed


def _ensure_json_str(value, default=""):
    if value is None:
        return default
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, ensure_ascii=False)
    except TypeError:
        return str(value)


def _map_model(model):
    if not isinstance(model, str):
        return model
    return MODEL_MAPPING.get(model, model)


def _apply_param_rules(payload):
    data = dict(payload or {})
    for key in OPENAI_PARAM_DROP:
        data.pop(key, None)
    for key, value in OPENAI_PARAM_DEFAULTS.items():
        data.setdefault(key, value)
    for key, value in OPENAI_PARAM_OVERRIDES.items():
        data[key] = value
    return data


def _build_upstream_payload(body):
    data = _apply_param_rules(body)
    data["messages"] = _normalize_chat_messages(data.get("messages"))
    data["model"] = _map_model(data.get("model"))
    data["stream"] = True
    return data
