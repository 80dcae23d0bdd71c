"""
Record Schema Registry

Declarative table of the nine portfolio record kinds. Each KindSpec lists its
fields, which of them are required (unconditionally or depending on another
field's value), their defaults, and how raw form values are coerced.

Usage:
    from app.modules.portfolio.registry import get_kind

    spec = get_kind("research_work")
    fields = spec.validate(form_values)   # raises ValidationError
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from app.core.exceptions import ValidationError


class FieldType(str, enum.Enum):
    """Semantic type a raw form value is coerced into"""
    STRING = "string"
    DATE = "date"
    INTEGER = "integer"
    BOOLEAN = "boolean"


TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off"}


@dataclass(frozen=True)
class RequiredWhen:
    """Field is required only when another field holds one of the given values"""
    field: str
    values: Tuple[str, ...]

    def __call__(self, values: Mapping[str, Any]) -> bool:
        return values.get(self.field) in self.values

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "values": list(self.values)}


def required_when(field_name: str, *values: str) -> RequiredWhen:
    return RequiredWhen(field_name, tuple(values))


def _today() -> str:
    return datetime.utcnow().date().isoformat()


@dataclass(frozen=True)
class FieldSpec:
    """One named attribute of a record kind"""
    name: str
    type: FieldType = FieldType.STRING
    required: Union[bool, RequiredWhen] = False
    default: Any = None
    choices: Optional[Tuple[str, ...]] = None

    def is_required(self, values: Mapping[str, Any]) -> bool:
        if isinstance(self.required, RequiredWhen):
            return self.required(values)
        return bool(self.required)

    def default_value(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    def coerce(self, raw: Any) -> Any:
        """Convert a raw (usually string) value into this field's type"""
        if self.type == FieldType.DATE:
            value = _coerce_date(raw)
        elif self.type == FieldType.INTEGER:
            value = _coerce_integer(raw)
        elif self.type == FieldType.BOOLEAN:
            value = _coerce_boolean(raw)
        else:
            value = _coerce_string(raw)

        if value is None:
            raise ValidationError(
                f"{self.name} must be a valid {self.type.value}", field=self.name
            )
        if self.choices is not None and value not in self.choices:
            raise ValidationError(
                f"{self.name} must be one of: {', '.join(c or '(empty)' for c in self.choices)}",
                field=self.name,
            )
        return value

    def to_dict(self) -> Dict[str, Any]:
        required: Any = self.required
        if isinstance(required, RequiredWhen):
            required = {"when": required.to_dict()}
        data: Dict[str, Any] = {"name": self.name, "type": self.type.value, "required": required}
        if self.default is not None and not callable(self.default):
            data["default"] = self.default
        if self.choices is not None:
            data["choices"] = list(self.choices)
        return data


def _coerce_string(raw: Any) -> Optional[str]:
    # JSON bodies may carry scalars; lists and objects are rejected
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (bool, int, float)):
        return str(raw)
    return None


def _coerce_date(raw: Any) -> Optional[str]:
    if isinstance(raw, datetime):
        return raw.isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    text = str(raw).strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text).isoformat()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text).isoformat()
    except ValueError:
        return None


def _coerce_integer(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def _coerce_boolean(raw: Any) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    text = str(raw).strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    return None


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@dataclass(frozen=True)
class KindSpec:
    """Registry entry for one record kind"""
    kind: str
    slug: str
    label: str
    fields: Tuple[FieldSpec, ...]
    requires_attachment: bool = True

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    def missing_fields(self, values: Mapping[str, Any]) -> List[str]:
        """Names of required fields absent from already-coerced values"""
        return [
            f.name for f in self.fields
            if f.is_required(values) and _is_blank(values.get(f.name))
        ]

    def validate(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Coerce, check and default the kind's fields.

        Unknown keys are ignored. Blank values count as absent. Raises
        ValidationError naming the first invalid or missing field.
        """
        values: Dict[str, Any] = {}
        for spec in self.fields:
            raw = data.get(spec.name)
            if _is_blank(raw):
                continue
            values[spec.name] = spec.coerce(raw)

        missing = self.missing_fields(values)
        if missing:
            raise ValidationError(f"{missing[0]} is required", field=missing[0])

        for spec in self.fields:
            if spec.name not in values and spec.default is not None:
                values[spec.name] = spec.default_value()
        return values

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "slug": self.slug,
            "label": self.label,
            "requires_attachment": self.requires_attachment,
            "fields": [f.to_dict() for f in self.fields],
        }


def _description() -> FieldSpec:
    return FieldSpec("description", default="")


RESEARCH_TYPES = ("Journal", "Conference", "Book/Chapter", "Other")
PRESENTATION_MODES = ("Oral", "Attended", "Poster", "Presented", "")
DELIVERY_MODES = ("Online", "Offline")


KINDS: Tuple[KindSpec, ...] = (
    KindSpec(
        kind="document",
        slug="documents",
        label="Document",
        fields=(
            FieldSpec("title", required=True),
            _description(),
        ),
    ),
    KindSpec(
        kind="award",
        slug="awards",
        label="Award",
        fields=(
            FieldSpec("title"),
            _description(),
            FieldSpec("date_received", FieldType.DATE),
        ),
    ),
    KindSpec(
        kind="patent",
        slug="patents",
        label="Patent",
        fields=(
            FieldSpec("title", required=True),
            FieldSpec("patent_number", required=True),
            FieldSpec("date_filed", FieldType.DATE),
            FieldSpec("status", default="Pending"),
        ),
    ),
    KindSpec(
        kind="review",
        slug="reviews",
        label="Review",
        fields=(
            FieldSpec("reviewer_name", required=True),
            FieldSpec("review_type", required=True),
            FieldSpec("date_reviewed", FieldType.DATE),
            _description(),
        ),
    ),
    KindSpec(
        kind="experience",
        slug="experiences",
        label="Experience",
        fields=(
            FieldSpec("role_title", required=True),
            FieldSpec("institution_name", default="Default Institution"),
            FieldSpec("author_details"),
            FieldSpec("present_country"),
            FieldSpec("online_link"),
            _description(),
            FieldSpec("start_date", FieldType.DATE, default=_today),
            FieldSpec("end_date", FieldType.DATE),
        ),
    ),
    KindSpec(
        kind="workshop",
        slug="workshops",
        label="Workshop",
        fields=(
            FieldSpec("title", required=True),
            _description(),
            FieldSpec("date_conducted", FieldType.DATE, required=True),
            FieldSpec("venue", default=""),
        ),
    ),
    KindSpec(
        kind="research_work",
        slug="research-work",
        label="Research Work",
        fields=(
            FieldSpec("title", required=True),
            FieldSpec("type", required=True, choices=RESEARCH_TYPES),
            FieldSpec("journal_name", required=required_when("type", "Journal", "Conference")),
            FieldSpec("book_written", required=required_when("type", "Book/Chapter")),
            FieldSpec(
                "publication_date",
                FieldType.DATE,
                required=required_when("type", "Journal", "Conference", "Book/Chapter"),
            ),
            FieldSpec("editors"),
            FieldSpec("authors"),
            FieldSpec("vol_issue"),
            FieldSpec("doi"),
            FieldSpec("snip"),
            FieldSpec("location"),
            FieldSpec("mode", default="", choices=PRESENTATION_MODES),
            FieldSpec("published_in_proceeding", FieldType.BOOLEAN, default=False),
            FieldSpec("invited_in_talk", FieldType.BOOLEAN, default=False),
            _description(),
        ),
    ),
    KindSpec(
        kind="talk",
        slug="talks",
        label="Talk",
        fields=(
            FieldSpec("name"),
            FieldSpec("talk_event_name"),
            FieldSpec("talk_panelist"),
            FieldSpec("present_country"),
            _description(),
            FieldSpec("talk_date", FieldType.DATE),
        ),
    ),
    KindSpec(
        kind="teaching_contribution",
        slug="teaching-contributions",
        label="Teaching Contribution",
        fields=(
            FieldSpec("course_name"),
            FieldSpec("course_code"),
            FieldSpec("students_registered", FieldType.INTEGER),
            FieldSpec("institute"),
            FieldSpec("mode_of_delivery", default="Online", choices=DELIVERY_MODES),
            _description(),
        ),
    ),
)

REGISTRY: Dict[str, KindSpec] = {spec.kind: spec for spec in KINDS}


def get_kind(kind: str) -> KindSpec:
    """Look up a kind, raising KeyError for unknown names"""
    return REGISTRY[kind]
