"""Data-driven request validation.

Rules are declared per field, either as a pipe string::

    {"name": "required|string|min:3", "price": "required|numeric|min:0"}

or as a list mixing rule names and ``Rule`` objects::

    {"old_password": ["required", current_password(user.password_hash)]}

``validate`` runs every field, stops at the first failing rule of each
field, and raises ``ValidationFailed`` with all collected messages. On
success it returns only the declared fields, normalized (emails lower-cased,
numbers as ``Decimal``, dates as ``datetime``).
"""

import re
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type, Union

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from repairdesk.core.exceptions import ValidationFailed
from repairdesk.core.security import verify_password
from repairdesk.core.storage import ALLOWED_IMAGE_EXTENSIONS, file_extension, file_size
from repairdesk.db.base import MAX_INT, MIN_INT, Base

MARKERS = {"required", "nullable", "sometimes"}

NUMERIC_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")

MESSAGES = {
    "required": "The {attribute} field is required.",
    "string": "The {attribute} field must be a string.",
    "email": "The {attribute} field must be a valid email address.",
    "numeric": "The {attribute} field must be a number.",
    "integer": "The {attribute} field must be an integer.",
    "date": "The {attribute} field must be a valid date.",
    "array": "The {attribute} field must be an array.",
    "image": "The {attribute} field must be an image.",
    "mimes": "The {attribute} field must be a file of type: {values}.",
    "in": "The selected {attribute} is invalid.",
    "enum": "The selected {attribute} is invalid.",
    "confirmed": "The {attribute} field confirmation does not match.",
    "exists": "The selected {attribute} is invalid.",
    "unique": "The {attribute} has already been taken.",
    "min.string": "The {attribute} field must be at least {min} characters.",
    "min.numeric": "The {attribute} field must be at least {min}.",
    "min.array": "The {attribute} field must have at least {min} items.",
    "min.file": "The {attribute} field must be at least {min} kilobytes.",
    "max.string": "The {attribute} field must not be greater than {max} characters.",
    "max.numeric": "The {attribute} field must not be greater than {max}.",
    "max.array": "The {attribute} field must not have more than {max} items.",
    "max.file": "The {attribute} field must not be greater than {max} kilobytes.",
    "current_password": "The old password is incorrect.",
}


def attribute_name(field: str) -> str:
    return field.replace("_", " ")


def is_upload(value: Any) -> bool:
    """Uploaded files expose ``filename`` and a ``file`` stream."""
    return hasattr(value, "filename") and hasattr(value, "file")


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple, dict)) and len(value) == 0:
        return True
    return False


class RuleFailed(Exception):
    """Raised by a rule; carries the rendered message."""


class ValidationContext:
    """What a rule may look at besides its own value."""

    def __init__(self, data: Mapping[str, Any], db: Optional[Session] = None):
        self.data = data
        self.db = db


class Rule:
    """A single validation step.

    ``__call__`` returns the (possibly normalized) value or raises
    ``RuleFailed``.
    """

    name = "rule"

    def fail(self, field: str, key: Optional[str] = None, **params) -> RuleFailed:
        template = MESSAGES.get(key or self.name, "The {attribute} field is invalid.")
        return RuleFailed(template.format(attribute=attribute_name(field), **params))

    def __call__(self, field: str, value: Any, ctx: ValidationContext) -> Any:
        raise NotImplementedError


# ============== Type rules ==============

class StringRule(Rule):
    name = "string"

    def __call__(self, field, value, ctx):
        if not isinstance(value, str):
            raise self.fail(field)
        return value


class EmailRule(Rule):
    name = "email"

    def __call__(self, field, value, ctx):
        if not isinstance(value, str):
            raise self.fail(field)
        try:
            validate_email(value.strip(), check_deliverability=False)
        except EmailNotValidError:
            raise self.fail(field)
        return value.strip().lower()


class NumericRule(Rule):
    name = "numeric"

    def __call__(self, field, value, ctx):
        if isinstance(value, bool):
            raise self.fail(field)
        if isinstance(value, (int, float, Decimal)):
            number = Decimal(str(value))
        elif isinstance(value, str) and NUMERIC_PATTERN.match(value.strip()):
            try:
                number = Decimal(value.strip())
            except InvalidOperation:
                raise self.fail(field)
        else:
            raise self.fail(field)
        # JSON bodies may carry NaN and Infinity
        if not number.is_finite():
            raise self.fail(field)
        return number


class IntegerRule(Rule):
    name = "integer"

    def __call__(self, field, value, ctx):
        if isinstance(value, bool):
            raise self.fail(field)
        if isinstance(value, int):
            number = value
        elif isinstance(value, str) and INTEGER_PATTERN.match(value.strip()):
            number = int(value.strip())
        else:
            raise self.fail(field)
        if not MIN_INT <= number <= MAX_INT:
            raise self.fail(field)
        return number


class DateRule(Rule):
    name = "date"

    def __call__(self, field, value, ctx):
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                parsed = datetime.fromisoformat(text)
            except ValueError:
                raise self.fail(field)
        else:
            raise self.fail(field)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


class ArrayRule(Rule):
    name = "array"

    def __call__(self, field, value, ctx):
        if isinstance(value, tuple):
            return list(value)
        if not isinstance(value, list):
            raise self.fail(field)
        return value


class ImageRule(Rule):
    name = "image"

    def __call__(self, field, value, ctx):
        if not is_upload(value):
            raise self.fail(field)
        if file_extension(value.filename) not in ALLOWED_IMAGE_EXTENSIONS:
            raise self.fail(field)
        content_type = getattr(value, "content_type", None)
        if content_type and not content_type.startswith("image/"):
            raise self.fail(field)
        return value


class MimesRule(Rule):
    name = "mimes"

    def __init__(self, *extensions: str):
        self.extensions = [e.strip().lower().lstrip(".") for e in extensions if e.strip()]
        allowed = set(self.extensions)
        if "jpg" in allowed or "jpeg" in allowed:
            allowed |= {"jpg", "jpeg"}
        self.allowed = allowed

    def __call__(self, field, value, ctx):
        if not is_upload(value) or file_extension(value.filename).lstrip(".") not in self.allowed:
            raise self.fail(field, values=", ".join(self.extensions))
        return value


# ============== Size rules ==============

def _measure(value: Any):
    """Return (kind, size) used by min/max."""
    if is_upload(value):
        return "file", Decimal(file_size(value.file)) / 1024
    if isinstance(value, bool):
        return "numeric", Decimal(int(value))
    if isinstance(value, (int, float, Decimal)):
        return "numeric", Decimal(str(value))
    if isinstance(value, (list, tuple, dict)):
        return "array", len(value)
    return "string", len(str(value))


class MinRule(Rule):
    name = "min"

    def __init__(self, limit: str):
        self.limit = Decimal(limit)
        self.display = limit

    def __call__(self, field, value, ctx):
        kind, size = _measure(value)
        try:
            too_small = size < self.limit
        except InvalidOperation:
            raise self.fail(field, "numeric")
        if too_small:
            raise self.fail(field, f"min.{kind}", min=self.display)
        return value


class MaxRule(Rule):
    name = "max"

    def __init__(self, limit: str):
        self.limit = Decimal(limit)
        self.display = limit

    def __call__(self, field, value, ctx):
        kind, size = _measure(value)
        try:
            too_large = size > self.limit
        except InvalidOperation:
            raise self.fail(field, "numeric")
        if too_large:
            raise self.fail(field, f"max.{kind}", max=self.display)
        return value


# ============== Value rules ==============

class InRule(Rule):
    name = "in"

    def __init__(self, *choices: str):
        self.choices = [str(c) for c in choices]

    def __call__(self, field, value, ctx):
        if str(value) not in self.choices:
            raise self.fail(field)
        return value


ENUM_TYPES: Dict[str, Type[Enum]] = {}


def register_enum(name: str, enum_cls: Type[Enum]) -> None:
    """Make ``enum:<name>`` available in pipe-string rules."""
    ENUM_TYPES[name] = enum_cls


class EnumRule(Rule):
    name = "enum"

    def __init__(self, enum_cls: Type[Enum]):
        self.enum_cls = enum_cls

    def __call__(self, field, value, ctx):
        try:
            return self.enum_cls(value)
        except ValueError:
            raise self.fail(field)


class ConfirmedRule(Rule):
    name = "confirmed"

    def __call__(self, field, value, ctx):
        if ctx.data.get(f"{field}_confirmation") != value:
            raise self.fail(field)
        return value


# ============== Database rules ==============

def _table(name: str):
    try:
        return Base.metadata.tables[name]
    except KeyError:
        raise ValueError(f"Unknown table {name!r} in validation rule")


class ExistsRule(Rule):
    """The value must match a live row of ``table.column``."""

    name = "exists"

    def __init__(self, table: str, column: str = "id"):
        self.table = table
        self.column = column

    def __call__(self, field, value, ctx):
        if ctx.db is None:
            raise RuntimeError("exists rule requires a database session")
        if isinstance(value, int) and not MIN_INT <= value <= MAX_INT:
            raise self.fail(field)
        table = _table(self.table)
        query = select(func.count()).select_from(table).where(table.c[self.column] == value)
        if "is_deleted" in table.c:
            query = query.where(table.c.is_deleted.is_(False))
        if not ctx.db.execute(query).scalar():
            raise self.fail(field)
        return value


class UniqueRule(Rule):
    """No other live row may hold the value (case-insensitive for text).

    ``ignore_id`` excludes the row being updated.
    """

    name = "unique"

    def __init__(self, table: str, column: str, ignore_id: Optional[str] = None):
        self.table = table
        self.column = column
        self.ignore_id = int(ignore_id) if ignore_id not in (None, "", "NULL") else None

    def __call__(self, field, value, ctx):
        if ctx.db is None:
            raise RuntimeError("unique rule requires a database session")
        table = _table(self.table)
        column = table.c[self.column]
        if isinstance(value, str):
            condition = func.lower(column) == value.lower()
        else:
            condition = column == value
        query = select(func.count()).select_from(table).where(condition)
        if "is_deleted" in table.c:
            query = query.where(table.c.is_deleted.is_(False))
        if self.ignore_id is not None:
            query = query.where(table.c.id != self.ignore_id)
        if ctx.db.execute(query).scalar():
            raise self.fail(field)
        return value


class CurrentPasswordRule(Rule):
    """The value must verify against the caller's stored password hash."""

    name = "current_password"

    def __init__(self, password_hash: str):
        self.password_hash = password_hash

    def __call__(self, field, value, ctx):
        if not isinstance(value, str) or not verify_password(value, self.password_hash):
            raise self.fail(field)
        return value


def current_password(password_hash: str) -> CurrentPasswordRule:
    return CurrentPasswordRule(password_hash)


# ============== Registry & parsing ==============

RULES: Dict[str, Callable[..., Rule]] = {
    "string": StringRule,
    "email": EmailRule,
    "numeric": NumericRule,
    "integer": IntegerRule,
    "date": DateRule,
    "array": ArrayRule,
    "image": ImageRule,
    "mimes": MimesRule,
    "min": MinRule,
    "max": MaxRule,
    "in": InRule,
    "enum": lambda name: EnumRule(ENUM_TYPES[name]),
    "confirmed": ConfirmedRule,
    "exists": ExistsRule,
    "unique": UniqueRule,
}

RuleSpec = Union[str, Sequence[Union[str, Rule]]]


def parse_rules(spec: RuleSpec):
    """Split a rule spec into (markers, [Rule, ...])."""
    items = spec.split("|") if isinstance(spec, str) else list(spec)
    markers = set()
    rules: List[Rule] = []
    for item in items:
        if isinstance(item, Rule):
            rules.append(item)
            continue
        item = item.strip()
        if not item:
            continue
        if item in MARKERS:
            markers.add(item)
            continue
        name, _, raw_params = item.partition(":")
        if name not in RULES:
            raise ValueError(f"Unknown validation rule {name!r}")
        params = [p for p in raw_params.split(",")] if raw_params else []
        rules.append(RULES[name](*params))
    return markers, rules


def _check_field(field, present, value, spec, ctx, errors, output):
    markers, rules = parse_rules(spec)

    if "sometimes" in markers and not present:
        return
    if is_empty(value):
        if "required" in markers:
            errors[field] = [MESSAGES["required"].format(attribute=attribute_name(field))]
        elif present and "nullable" in markers:
            output[field] = None
        return

    for rule in rules:
        try:
            value = rule(field, value, ctx)
        except RuleFailed as e:
            errors[field] = [str(e)]
            return
    output[field] = value


def validate(
    payload: Optional[Mapping[str, Any]],
    rules: Mapping[str, RuleSpec],
    db: Optional[Session] = None,
    files: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Validate ``payload`` against ``rules``.

    Returns the normalized payload restricted to the declared fields.

    Raises:
        ValidationFailed: with ``errors`` mapping field -> [message].
    """
    data: Dict[str, Any] = dict(payload or {})
    if files:
        data.update(files)
    ctx = ValidationContext(data, db)
    errors: Dict[str, List[str]] = {}
    output: Dict[str, Any] = {}

    for field, spec in rules.items():
        if field.endswith(".*"):
            continue
        _check_field(field, field in data, data.get(field), spec, ctx, errors, output)

    for field, spec in rules.items():
        if not field.endswith(".*"):
            continue
        parent = field[:-2]
        items = output.get(parent, data.get(parent))
        if parent in errors or items is None:
            continue
        if not isinstance(items, (list, tuple)):
            items = [items]
        normalized = []
        for index, item in enumerate(items):
            key = f"{parent}.{index}"
            item_out: Dict[str, Any] = {}
            _check_field(key, True, item, spec, ctx, errors, item_out)
            if key in item_out:
                normalized.append(item_out[key])
        output[parent] = normalized

    if errors:
        raise ValidationFailed(errors=errors)
    return output
