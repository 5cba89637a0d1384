from flask import request

from services.errors import ValidationError


def json_object(required: bool = False) -> dict:
    """
    The request's JSON body as a dict. A body that is present but not an
    object (list, string, number) is a 400; a missing body is {} unless
    required.
    """
    data = request.get_json(silent=True)
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    return data


def text(data: dict, key: str) -> str:
    """Stripped string value of data[key]; "" when missing or not a string."""
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def optional_text(data: dict, key: str):
    return text(data, key) or None


def raw_text(data: dict, key: str) -> str:
    # passwords are taken as-is, never stripped
    value = data.get(key)
    return value if isinstance(value, str) else ""
