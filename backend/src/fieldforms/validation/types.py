"""Core types for the fieldforms validation pipeline.

A validation run moves through four stages:
- Resolve: parse declared rules and attach extra validator calls
- Evaluate: run the rule grammar once over the document attributes
- Augment: run extra (datastore-backed) validators in declaration order
- Reduce: turn failed properties into localized error descriptors
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ExtraValidation(Enum):
    """Asynchronous validators that run against the datastore.

    The value is the function name used in rule strings.
    """

    UNIQUE = "unique"
    UNIQUE_WITHIN = "uniqueWithin"
    EXISTS = "exists"
    IS_ISO_WEEK = "isISOWeek"

    @classmethod
    def names(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass(frozen=True)
class ValidationSpec:
    """One declared validation rule.

    Attributes:
        property: Name of the field the rule is declared for
        rule: Rule grammar source (e.g., "lenMin(5)" or "unique('patient_id')")
        message: Localized messages as ``[{"content": ..., "locale": ...}]``
        translation_key: Key into the translations catalogue, used instead of message
    """

    property: str
    rule: str = ""
    message: list[dict[str, str]] = field(default_factory=list)
    translation_key: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ValidationSpec":
        """Create ValidationSpec from a YAML/JSON dict."""
        message = data.get("message") or []
        if isinstance(message, str):
            message = [{"content": message, "locale": "en"}]

        return cls(
            property=data.get("property", ""),
            rule=data.get("rule", ""),
            message=list(message),
            translation_key=data.get("translation_key"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"property": self.property, "rule": self.rule}
        if self.message:
            result["message"] = self.message
        if self.translation_key:
            result["translation_key"] = self.translation_key
        return result


@dataclass(frozen=True)
class ResolvedSpec(ValidationSpec):
    """A ValidationSpec after rule resolution.

    When the rule calls an extra validator, ``property`` carries a
    ``_<funcName>`` suffix so the grammar result slot does not collide with a
    sibling rule on the same field.

    Attributes:
        validation: The extra validator called by the rule, if any
        func_args: Arguments passed to the extra validator
        field: The property name as declared, before the suffix was added
    """

    validation: ExtraValidation | None = None
    func_args: list[Any] = field(default_factory=list)
    field: str | None = None

    @property
    def func_name(self) -> str | None:
        return self.validation.value if self.validation else None

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.validation:
            result["funcName"] = self.func_name
            result["funcArgs"] = list(self.func_args)
            result["field"] = self.field
        return result


@dataclass(frozen=True)
class ErrorDescriptor:
    """A single failed property.

    Attributes:
        code: ``invalid_<property>``
        message: Localized message, or None when the rule declares none
    """

    code: str
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


# =============================================================================
# Errors
# =============================================================================


class ValidationFailure(Exception):
    """Base class for failures that abort a validation run."""


class RuleSyntaxError(ValidationFailure):
    """One or more rules could not be parsed or evaluated.

    Attributes:
        errors: One message per failing rule
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("; ".join(errors))


class ExtraValidationError(ValidationFailure):
    """An extra validator failed (datastore error or bad arguments).

    Attributes:
        validator: Name of the failing validator
    """

    def __init__(self, validator: str, message: str):
        self.validator = validator
        super().__init__(f"Error running \"{validator}\" validation: {message}")
