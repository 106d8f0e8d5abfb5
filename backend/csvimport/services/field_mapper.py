"""
Column to field value mapping.

Each mapped column is resolved once per batch to a ColumnVariant. Raw
values are then coerced per variant:

- NAME / TITLE: the page's own name and title; without a name column
  the name is derived from the title
- SCALAR: coerced immediately (text, numbers, dates, checkboxes,
  passwords, options)
- ATTACHMENT: split into locators and deferred until the page has an id
- REFERENCE: split into locators and resolved once the row is known to
  be written

Empty raw values are ignored on every variant.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from csvimport.models.page import (
    ATTACHMENT_KINDS,
    FIELD_KINDS,
    REFERENCE_KINDS,
    Template,
    TemplateField,
)
from csvimport.services.errors import FieldValueError, ImportConfigError
from csvimport.services.import_config import NAME_TARGET, TITLE_TARGET
from csvimport.services.page_names import sanitize_page_name

# Multi-value cells separate items with newlines, tabs or pipes
MULTI_VALUE_SEPARATOR = re.compile(r"[\n\r\t|]+")

TRUE_VALUES = {"1", "true", "yes", "y", "on", "x", "checked"}
FALSE_VALUES = {"0", "false", "no", "n", "off", ""}

DATE_FORMATS = [
    "%Y-%m-%d",  # 2024-01-15
    "%Y/%m/%d",  # 2024/01/15
    "%m/%d/%Y",  # 01/15/2024
    "%m/%d/%y",  # 01/15/24
    "%b %d, %Y",  # Jan 15, 2024
    "%B %d, %Y",  # January 15, 2024
]
DATETIME_FORMATS = [
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
]


class ColumnVariant(str, Enum):
    NAME = "name"
    TITLE = "title"
    SCALAR = "scalar"
    ATTACHMENT = "attachment"
    REFERENCE = "reference"


@dataclass
class MappedColumn:
    """A source column bound to its target."""

    index: int
    target: str
    variant: ColumnVariant
    field: TemplateField | None = None


@dataclass
class MappedValue:
    """A value ready to be set on the page."""

    field_name: str
    value: Any
    secret: bool = False  # plain password; hashed when applied


@dataclass
class DeferredAttachment:
    """Attachment locators waiting for the page to get an id."""

    field_name: str
    locators: list[str]


@dataclass
class ReferenceRequest:
    """Reference locators waiting to be resolved to page ids."""

    field: TemplateField
    locators: list[str]


class PendingAttachmentSet:
    """Attachment locators per field, flushed after the page is persisted."""

    def __init__(self):
        self._items: dict[str, list[str]] = {}

    def add(self, field_name: str, locators: list[str]) -> None:
        self._items.setdefault(field_name, []).extend(locators)

    def items(self):
        return self._items.items()

    def __bool__(self) -> bool:
        return any(self._items.values())

    def __len__(self) -> int:
        return sum(len(locators) for locators in self._items.values())


@dataclass
class CandidatePage:
    """A row mapped onto a page that does not exist (yet)."""

    name: str | None = None
    title: str | None = None
    values: list[MappedValue] = field(default_factory=list)
    references: list[ReferenceRequest] = field(default_factory=list)
    attachments: PendingAttachmentSet = field(default_factory=PendingAttachmentSet)


def split_locators(raw: str, single: bool = False) -> list[str]:
    """Split a multi-value cell into its items, keeping only the first if ``single``."""
    locators = [item.strip() for item in MULTI_VALUE_SEPARATOR.split(raw.strip())]
    locators = [item for item in locators if item]
    if single:
        return locators[:1]
    return locators


def resolve_columns(
    template: Template, column_mapping: tuple[str, ...] | list[str]
) -> list[MappedColumn]:
    """Bind each mapped column to its variant. Ignored columns are dropped."""
    columns = []
    for index, target in enumerate(column_mapping):
        if not target:
            continue
        if target == NAME_TARGET:
            columns.append(MappedColumn(index, target, ColumnVariant.NAME))
            continue
        if target == TITLE_TARGET:
            columns.append(MappedColumn(index, target, ColumnVariant.TITLE))
            continue

        template_field = template.get_field(target)
        if template_field is None:
            raise ImportConfigError(f"Unknown field '{target}' in column mapping")
        if template_field.kind not in FIELD_KINDS:
            raise ImportConfigError(
                f"Field '{target}' has unsupported kind '{template_field.kind}'"
            )

        if template_field.kind in ATTACHMENT_KINDS:
            variant = ColumnVariant.ATTACHMENT
        elif template_field.kind in REFERENCE_KINDS:
            variant = ColumnVariant.REFERENCE
        else:
            variant = ColumnVariant.SCALAR
        columns.append(MappedColumn(index, target, variant, template_field))
    return columns


class FieldValueMapper:
    """Map CSV rows onto candidate pages of one template."""

    def __init__(self, template: Template, column_mapping: tuple[str, ...] | list[str]):
        self.template = template
        self.columns = resolve_columns(template, column_mapping)
        # A mapped name column is the only source of names; blank means no name
        self.has_name_column = any(c.variant == ColumnVariant.NAME for c in self.columns)

    def map_row(self, fields: list[str]) -> CandidatePage:
        """
        Map one parsed record.

        Raises:
            FieldValueError: A value cannot be coerced to its field
        """
        candidate = CandidatePage()

        for column in self.columns:
            raw = fields[column.index] if column.index < len(fields) else ""
            result = self.map(column, raw)

            if result is None:
                continue
            if isinstance(result, DeferredAttachment):
                candidate.attachments.add(result.field_name, result.locators)
            elif isinstance(result, ReferenceRequest):
                candidate.references.append(result)
            elif column.variant == ColumnVariant.NAME:
                candidate.name = result.value
            elif column.variant == ColumnVariant.TITLE:
                candidate.title = result.value
            else:
                candidate.values.append(result)

        if not self.has_name_column and candidate.title:
            candidate.name = sanitize_page_name(candidate.title) or None

        return candidate

    def map(
        self, column: MappedColumn, raw: str
    ) -> MappedValue | DeferredAttachment | ReferenceRequest | None:
        """Coerce one raw value for its column. Returns None for empty values."""
        if raw is None or not raw.strip():
            return None

        if column.variant == ColumnVariant.NAME:
            return MappedValue(NAME_TARGET, sanitize_page_name(raw) or None)

        if column.variant == ColumnVariant.TITLE:
            return MappedValue(TITLE_TARGET, raw.strip())

        template_field = column.field
        if column.variant == ColumnVariant.ATTACHMENT:
            locators = split_locators(raw, single=template_field.is_single)
            return DeferredAttachment(template_field.name, locators) if locators else None

        if column.variant == ColumnVariant.REFERENCE:
            locators = split_locators(raw, single=template_field.is_single)
            return ReferenceRequest(template_field, locators) if locators else None

        return self._map_scalar(template_field, raw)

    def _map_scalar(self, template_field: TemplateField, raw: str) -> MappedValue:
        kind = template_field.kind
        name = template_field.name

        if kind == "text":
            return MappedValue(name, raw.strip())
        if kind == "textarea":
            return MappedValue(name, raw)
        if kind == "password":
            return MappedValue(name, raw, secret=True)
        if kind == "integer":
            return MappedValue(name, self._parse_int(name, raw))
        if kind == "float":
            return MappedValue(name, self._parse_float(name, raw))
        if kind == "date":
            return MappedValue(name, self._parse_date(name, raw))
        if kind == "checkbox":
            return MappedValue(name, self._parse_bool(name, raw))
        if kind == "options":
            return MappedValue(name, self._match_options(template_field, raw))

        raise FieldValueError(f"Field '{name}' has unsupported kind '{kind}'")

    @staticmethod
    def _parse_int(name: str, raw: str) -> int:
        try:
            return int(raw.strip())
        except ValueError:
            raise FieldValueError(f"Field '{name}': '{raw}' is not an integer") from None

    @staticmethod
    def _parse_float(name: str, raw: str) -> float:
        try:
            return float(raw.strip())
        except ValueError:
            raise FieldValueError(f"Field '{name}': '{raw}' is not a number") from None

    @staticmethod
    def _parse_date(name: str, raw: str) -> str:
        """Parse a date or datetime and return it in ISO format."""
        value = raw.strip()

        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(value, fmt).date().isoformat()
            except ValueError:
                continue

        for fmt in DATETIME_FORMATS:
            try:
                return datetime.strptime(value, fmt).isoformat()
            except ValueError:
                continue

        raise FieldValueError(f"Field '{name}': '{raw}' is not a recognised date")

    @staticmethod
    def _parse_bool(name: str, raw: str) -> bool:
        value = raw.strip().lower()
        if value in TRUE_VALUES:
            return True
        if value in FALSE_VALUES:
            return False
        raise FieldValueError(f"Field '{name}': '{raw}' is not a yes/no value")

    @staticmethod
    def _match_options(template_field: TemplateField, raw: str) -> str | list[str] | None:
        """Match each item against the field's allowed options, ignoring case."""
        allowed = {str(option).lower(): str(option) for option in template_field.options or []}

        selected = []
        for item in split_locators(raw, single=template_field.is_single):
            option = allowed.get(item.lower())
            if option is None:
                raise FieldValueError(
                    f"Field '{template_field.name}': '{item}' is not one of its options"
                )
            if option not in selected:
                selected.append(option)

        if template_field.is_single:
            return selected[0] if selected else None
        return selected
