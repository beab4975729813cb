"""Name and email validation shared by the shopping list and store registry.

Store and item names accept letters, digits and combining marks from any
script, whitespace, and a small set of punctuation. Length is checked on the
raw value; the returned value is trimmed.
"""

import unicodedata

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from app.core.errors import ValidationError

MAX_ITEM_NAME_LENGTH = 500
MAX_STORE_NAME_LENGTH = 100
MAX_SECTION_NAME_LENGTH = 100

_ALLOWED_PUNCTUATION = frozenset("-.,&'!?()#@%+=/\\:;\"")
_ALLOWED_CATEGORY_PREFIXES = ("L", "N", "M")

_email_adapter = TypeAdapter(EmailStr)


def _IsAllowedChar(char: str) -> bool:
    if char.isspace() or char in _ALLOWED_PUNCTUATION:
        return True
    return unicodedata.category(char).startswith(_ALLOWED_CATEGORY_PREFIXES)


def _ValidateName(value, label: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{label} is required")
    if len(value) > max_length:
        raise ValidationError(f"{label} too long (maximum {max_length} characters)")
    if not all(_IsAllowedChar(char) for char in value):
        raise ValidationError(f"{label} contains invalid characters")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{label} cannot be empty")
    return trimmed


def ValidateItemName(value) -> str:
    return _ValidateName(value, "Item name", MAX_ITEM_NAME_LENGTH)


def ValidateStoreName(value) -> str:
    return _ValidateName(value, "Store name", MAX_STORE_NAME_LENGTH)


def ValidateSectionName(value) -> str:
    return _ValidateName(value, "Section name", MAX_SECTION_NAME_LENGTH)


def NormalizeEmail(value) -> str:
    if not isinstance(value, str):
        raise ValidationError("Invalid email format")
    candidate = value.strip().lower()
    try:
        _email_adapter.validate_python(candidate)
    except PydanticValidationError as exc:
        raise ValidationError("Invalid email format") from exc
    return candidate
