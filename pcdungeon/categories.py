"""
Dynamic field definitions on categories and validation of component
technical specs against them.
"""
import re
from typing import Any, List

from pydantic import EmailStr, HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from pcdungeon.errors import NotFoundError, ValidationError
from pcdungeon.schemas import CategoryField

_field_adapter = TypeAdapter(CategoryField)
_text_adapters = {"email": TypeAdapter(EmailStr), "url": TypeAdapter(HttpUrl)}


def _parse_field(data: dict) -> dict:
    try:
        return _field_adapter.validate_python(data).model_dump()
    except PydanticValidationError as exc:
        raise ValidationError("; ".join(e["msg"] for e in exc.errors()))


def _ensure_unique_name(fields: List[dict], name: str, exclude_id: str = None) -> None:
    for f in fields:
        if f["name"] == name and f.get("id") != exclude_id:
            raise ValidationError(f"Field '{name}' already exists in this category")


def active_fields(category: dict) -> List[dict]:
    fields = [f for f in category.get("fields") or [] if f.get("is_active", True)]
    return sorted(fields, key=lambda f: f.get("sort_order", 0))


def add_field(category: dict, data: dict) -> dict:
    fields = category.setdefault("fields", [])
    data = {**data, "sort_order": len(fields)}
    data.pop("id", None)
    field = _parse_field(data)
    _ensure_unique_name(fields, field["name"])
    fields.append(field)
    return field


def _field_index(category: dict, field_id: str) -> int:
    for i, f in enumerate(category.get("fields") or []):
        if f.get("id") == field_id:
            return i
    raise NotFoundError("Field not found")


def update_field(category: dict, field_id: str, data: dict) -> dict:
    fields = category["fields"]
    idx = _field_index(category, field_id)
    merged = {**fields[idx], **{k: v for k, v in data.items() if k != "id"}}
    field = _parse_field(merged)
    _ensure_unique_name(fields, field["name"], exclude_id=field_id)
    fields[idx] = field
    return field


def remove_field(category: dict, field_id: str) -> dict:
    idx = _field_index(category, field_id)
    removed = category["fields"].pop(idx)
    for order, f in enumerate(category["fields"]):
        f["sort_order"] = order
    return removed


def _check_value(field: dict, value: Any) -> str:
    label = field.get("label") or field["name"]
    ftype = field["type"]

    if ftype == "number":
        if isinstance(value, bool):
            return f"{label} must be a number"
        try:
            number = float(value)
        except (TypeError, ValueError):
            return f"{label} must be a number"
        if field.get("min_value") is not None and number < field["min_value"]:
            return f"{label} must be at least {field['min_value']}"
        if field.get("max_value") is not None and number > field["max_value"]:
            return f"{label} must be at most {field['max_value']}"
        return ""

    if ftype == "boolean":
        return "" if isinstance(value, bool) else f"{label} must be true or false"

    if ftype == "select":
        return "" if value in field.get("options", []) else f"{label} must be one of: {', '.join(field['options'])}"

    if not isinstance(value, str):
        return f"{label} must be text"
    if ftype in _text_adapters:
        try:
            _text_adapters[ftype].validate_python(value)
        except PydanticValidationError:
            kind = "URL" if ftype == "url" else "email"
            return f"{label} must be a valid {kind}"
    if field.get("min_length") is not None and len(value) < field["min_length"]:
        return f"{label} must be at least {field['min_length']} characters"
    if field.get("max_length") is not None and len(value) > field["max_length"]:
        return f"{label} must be at most {field['max_length']} characters"
    if field.get("pattern") and not re.fullmatch(field["pattern"], value):
        return f"{label} has an invalid format"
    return ""


def validate_specs(category: dict, specs: dict) -> None:
    errors = []
    for field in active_fields(category):
        value = specs.get(field["name"])
        if value is None or value == "":
            if field.get("required"):
                errors.append(f"{field.get('label') or field['name']} is required")
            continue
        problem = _check_value(field, value)
        if problem:
            errors.append(problem)
    if errors:
        raise ValidationError("; ".join(errors))
