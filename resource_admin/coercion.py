"""
Turn submitted form strings into native attribute values.

Coercion never rejects a value. A malformed number becomes zero, a malformed
date becomes None. The outcome is tagged so callers can report what happened.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from werkzeug.security import generate_password_hash

from resource_admin.fields import FieldKind

logger = logging.getLogger(__name__)

TRUE_VALUES = frozenset({'on', 'true', '1', 'yes'})


class CoercionStatus(enum.Enum):
    OK = 'ok'
    OMITTED = 'omitted'
    DEFAULTED = 'defaulted'


@dataclass(frozen=True)
class CoercionResult:
    status: CoercionStatus
    value: Any = None
    raw: Any = None

    @property
    def should_assign(self):
        return self.status is not CoercionStatus.OMITTED


def ok(value, raw=None):
    return CoercionResult(CoercionStatus.OK, value, raw)


def omitted(raw=None):
    return CoercionResult(CoercionStatus.OMITTED, None, raw)


def defaulted(value, raw=None):
    return CoercionResult(CoercionStatus.DEFAULTED, value, raw)


def _parse_int(raw):
    try:
        return ok(int(raw.strip()), raw)
    except (ValueError, AttributeError):
        pass
    try:
        # "3.0" style input for integer columns
        as_float = float(raw)
        if as_float.is_integer():
            return ok(int(as_float), raw)
    except (TypeError, ValueError):
        pass
    return defaulted(0, raw)


def _parse_float(raw):
    try:
        return ok(float(raw), raw)
    except (TypeError, ValueError):
        return defaulted(0.0, raw)


def _parse_datetime(raw, date_only):
    text = (raw or '').strip()
    if not text:
        return defaulted(None, raw)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return defaulted(None, raw)
    return ok(parsed.date() if date_only else parsed, raw)


def _parse_reference(raw, value_type):
    """Foreign keys follow the referenced column's type; untyped keys keep int-looking ids as ints"""
    text = str(raw).strip()
    if value_type is None:
        return ok(coerce_identifier(text), raw)
    if issubclass(value_type, int) and not issubclass(value_type, bool):
        return _parse_int(text)
    if issubclass(value_type, (float, Decimal)):
        return _parse_float(text)
    return ok(text, raw)


def coerce(kind, raw, value_type=None):
    """Coerce one submitted value (None when the key was absent) to the field kind.

    value_type is the column's Python type; it decides how references parse.
    """
    kind = FieldKind.parse(kind)

    if kind is FieldKind.BOOLEAN:
        return ok(str(raw or '').strip().lower() in TRUE_VALUES, raw)

    if kind is FieldKind.PASSWORD:
        if not raw:
            return omitted(raw)
        return ok(generate_password_hash(raw), None)

    if kind is FieldKind.REFERENCE:
        if raw is None or str(raw).strip() == '':
            return ok(None, raw)
        return _parse_reference(raw, value_type)

    if kind is FieldKind.NUMBER:
        return _parse_int('' if raw is None else str(raw))

    if kind is FieldKind.DECIMAL:
        return _parse_float(raw)

    if kind is FieldKind.DATE:
        return _parse_datetime(raw, date_only=True)

    if kind is FieldKind.DATETIME:
        return _parse_datetime(raw, date_only=False)

    if kind.is_upload:
        # Uploads are handled by the upload store, not from form text
        return omitted(raw)

    return ok('' if raw is None else str(raw), raw)


def coerce_filter_value(kind, raw, value_type=None):
    """Coerce a filter value; unparsable input is passed through as the raw string"""
    kind = FieldKind.parse(kind)
    if kind in (FieldKind.NUMBER, FieldKind.REFERENCE, FieldKind.DECIMAL,
                FieldKind.DATE, FieldKind.DATETIME, FieldKind.BOOLEAN):
        result = coerce(kind, raw, value_type)
        if result.status is CoercionStatus.OK:
            return result.value
        return raw
    return raw


def coerce_identifier(raw):
    """Parse a record identifier; integer-looking ids become ints, anything else stays a string"""
    if raw is None:
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return text


def is_new_identifier(raw):
    """True when the submitted id means "create" (absent, empty or zero)"""
    return coerce_identifier(raw) in (None, 0)


def coerce_key(raw, value_type=None):
    """Parse an identifier for a key column of the given Python type; string keys are kept verbatim"""
    if value_type is not None and issubclass(value_type, str):
        if raw is None:
            return None
        text = str(raw).strip()
        return text or None
    return coerce_identifier(raw)
