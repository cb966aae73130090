"""
Typed schemas for CSV rows and Linear customers.

CsvRow validates one untyped CSV row:
- customer name is required, non-empty and single-line
- website is optional and single-line
- email is single-line and syntactically valid
- child count is an optional non-negative number
- external id (debtor number) is optional

validate_row() never raises; a row that breaks any rule comes back as a
RowValidationError listing every failed field.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

# Permissive RFC-like email pattern: one "@", no leading or doubled dots,
# dotted domain ending in a 2+ letter label
EMAIL_PATTERN = re.compile(
    r"^(?!\.)(?!.*\.\.)([a-z0-9_'+\-.]*)[a-z0-9_'+\-]@([a-z0-9][a-z0-9\-]*\.)+[a-z]{2,}$",
    re.IGNORECASE,
)

_FIELD_LABELS = {
    "customer_name": "Customer name",
    "website": "Website",
    "email": "Email",
}


def _has_line_break(value: str) -> bool:
    return "\r" in value or "\n" in value


class CsvRow(BaseModel):
    """One validated customer row from the CSV export."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    customer_name: str = Field(
        min_length=1,
        validation_alias=AliasChoices("B_Zuordnung", "customer_name", "name"),
    )
    website: str = Field(
        default="",
        validation_alias=AliasChoices("Website", "website"),
    )
    email: str = Field(
        validation_alias=AliasChoices("E_Mail", "email"),
    )
    child_count: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("Kinderzahl", "child_count"),
    )
    external_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("Debitornummer", "external_id"),
    )

    @field_validator("website", mode="before")
    @classmethod
    def empty_website(cls, v):
        """Missing website cells arrive as None."""
        return "" if v is None else v

    @field_validator("child_count", mode="before")
    @classmethod
    def parse_child_count(cls, v):
        """Empty cells mean "no child count"; booleans are not numbers."""
        if v is None:
            return None
        if isinstance(v, bool):
            raise ValueError("Child count must be a number")
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("external_id", mode="before")
    @classmethod
    def parse_external_id(cls, v):
        """Debtor numbers may be read as numbers; keep them as text."""
        if v is None:
            return None
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("customer_name", "website")
    @classmethod
    def single_line(cls, v, info):
        if _has_line_break(v):
            raise ValueError(f"{_FIELD_LABELS[info.field_name]} must not contain newlines")
        return v

    @field_validator("email")
    @classmethod
    def valid_email(cls, v):
        if _has_line_break(v):
            raise ValueError("Email must not contain newlines")
        if not EMAIL_PATTERN.match(v):
            raise ValueError(f"Expected a valid email address, received {v!r}")
        return v


# Maps every accepted column header back to the CsvRow field name
_FIELD_BY_ALIAS: Dict[str, str] = {
    alias: name
    for name, info in CsvRow.model_fields.items()
    for alias in info.validation_alias.choices
}


@dataclass(frozen=True)
class FieldIssue:
    """A single failed validation rule."""
    field: str
    message: str


@dataclass(frozen=True)
class RowValidationError:
    """A row that failed structural validation."""
    row_index: int
    row_contents: Any
    issues: Tuple[FieldIssue, ...]

    kind = "validation"

    @property
    def message(self) -> str:
        return "; ".join(f"{issue.field}: {issue.message}" for issue in self.issues)


def _issues_from(error: ValidationError) -> Tuple[FieldIssue, ...]:
    issues = []
    for detail in error.errors():
        loc = detail.get("loc") or ()
        field = str(loc[0]) if loc else "row"
        issues.append(FieldIssue(field=_FIELD_BY_ALIAS.get(field, field), message=detail["msg"]))
    return tuple(issues)


def validate_row(row: Mapping[str, Any], row_index: int) -> Union[CsvRow, RowValidationError]:
    """
    Validate one raw CSV row.

    Args:
        row: Untyped key/value mapping keyed by CSV column headers
        row_index: 0-based position of the row in the input

    Returns:
        CsvRow on success, RowValidationError otherwise
    """
    try:
        return CsvRow.model_validate(row)
    except ValidationError as e:
        return RowValidationError(
            row_index=row_index,
            row_contents=row,
            issues=_issues_from(e),
        )


class RemoteCustomer(BaseModel):
    """A customer as stored in Linear."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str
    name: str
    external_ids: List[str] = Field(default_factory=list, alias="externalIds")
    domains: List[str] = Field(default_factory=list)
    size: Optional[float] = None

    @field_validator("external_ids", "domains", mode="before")
    @classmethod
    def null_list(cls, v):
        return [] if v is None else v


class CustomerPayload(BaseModel):
    """Input for the customerCreate / customerUpdate mutations."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    domains: List[str] = Field(default_factory=list)
    external_ids: List[str] = Field(default_factory=list, alias="externalIds")
    size: Optional[float] = None

    def to_create_input(self) -> Dict[str, Any]:
        """Mutation input for creates; an unknown size is left out."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_update_input(self) -> Dict[str, Any]:
        """Mutation input for updates; an unknown size clears the stored one."""
        return self.model_dump(by_alias=True)
