"""Structured response schema and validator.

``validate`` is a pure gate: it returns either a ``StructuredResponse`` or a
``ValidationError`` value and never raises for a bad document.  Validation is
strict: ``confidence`` must be a JSON number, ``requiresHuman`` a JSON
boolean, and so on; nothing is coerced.  When several fields are wrong the
returned ``SchemaViolationError`` lists all of them.
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from helpdesk.errors import (
    MalformedDocumentError,
    SchemaViolationError,
    ValidationError,
    Violation,
)

MAX_RESPONSE_LENGTH = 500

Intent = Literal[
    "order_status",
    "return_request",
    "product_inquiry",
    "account_help",
    "general_question",
    "complaint",
    "unknown",
]

# RFC 5322-ish pattern; covers the vast majority of real-world emails
# without requiring an external dependency.
_EMAIL_RE = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)


def is_valid_email(email: str) -> bool:
    return bool(email) and _EMAIL_RE.fullmatch(email) is not None


def _reject_null(value: Any) -> Any:
    if value is None:
        raise ValueError("must be omitted rather than null")
    return value


class Entities(BaseModel):
    """Entities extracted from the customer message; every key is optional."""

    model_config = ConfigDict(strict=True, frozen=True, populate_by_name=True)

    order_id: str | None = Field(default=None, alias="orderId")
    product_name: str | None = Field(default=None, alias="productName")
    email: str | None = None
    account_id: str | None = Field(default=None, alias="accountId")

    @field_validator("order_id", "product_name", "email", "account_id", mode="before")
    @classmethod
    def present_means_string(cls, value: Any) -> Any:
        return _reject_null(value)

    @field_validator("email")
    @classmethod
    def email_syntax(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_email(value):
            raise ValueError("not a valid email address")
        return value


class StructuredResponse(BaseModel):
    """Intent classification, extracted entities and the reply to show."""

    model_config = ConfigDict(strict=True, frozen=True, populate_by_name=True)

    intent: Intent
    confidence: float = Field(ge=0.0, le=1.0)
    entities: Entities
    response: str = Field(min_length=1, max_length=MAX_RESPONSE_LENGTH)
    requires_human: bool = Field(alias="requiresHuman")
    suggested_actions: list[str] | None = Field(default=None, alias="suggestedActions")

    @field_validator("suggested_actions", mode="before")
    @classmethod
    def actions_not_null(cls, value: Any) -> Any:
        return _reject_null(value)

    def to_document(self) -> dict[str, Any]:
        """Wire-shaped dict (camelCase keys, absent optionals omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)


def _violations(exc: PydanticValidationError) -> list[Violation]:
    violations = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "<root>"
        violations.append(Violation(field=path, message=error["msg"]))
    return violations


def validate(raw_text: str) -> StructuredResponse | ValidationError:
    """Parse and validate a raw model output against the response schema."""
    try:
        document = json.loads(raw_text)
    except (TypeError, ValueError) as exc:
        return MalformedDocumentError(f"Invalid JSON from model: {exc}")

    if not isinstance(document, dict):
        return MalformedDocumentError(
            f"Expected a JSON object, got {type(document).__name__}"
        )

    try:
        return StructuredResponse.model_validate_json(raw_text)
    except PydanticValidationError as exc:
        return SchemaViolationError(_violations(exc))
