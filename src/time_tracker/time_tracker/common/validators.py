from __future__ import annotations

from typing import Iterable, Optional

from ..core.constants import MAX_DESCRIPTION_LENGTH, MAX_TAG_LENGTH
from ..core.exceptions import ValidationError


def require_non_empty(value: str, field_name: str) -> str:
    if not value or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def require_positive_int(value, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if number <= 0:
        raise ValidationError(f"{field_name} must be positive")
    return number


def optional_positive_int(value, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return require_positive_int(value, field_name)


def require_bool(value, field_name: str) -> bool:
    # JSON true/false only; "false" or 0 must not slip through as truthy.
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be true or false")
    return value


def clean_description(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return value or None


def clean_tags(tags: Optional[Iterable[str]]) -> tuple[str, ...]:
    """Normalize tags into a duplicate-free tuple, keeping first-seen order."""
    if tags is None:
        return ()
    if isinstance(tags, str):
        raise ValidationError("Tags must be a list of strings")

    out: list[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be a list of strings")
        tag = tag.strip()
        if not tag:
            continue
        if len(tag) > MAX_TAG_LENGTH:
            raise ValidationError(f"Tag must be at most {MAX_TAG_LENGTH} characters")
        if tag not in out:
            out.append(tag)
    return tuple(out)
