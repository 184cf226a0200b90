"""fieldforms report validation.

Validations combine a compact rule grammar (``lenMin(5) && integer``) with
extra validators that consult the datastore (``unique('patient_id')``).

Usage:
    from fieldforms.validation import (
        register_all_builtins,
        register_extra_validations,
        ValidationService,
    )

    # At application startup
    register_all_builtins()
    register_extra_validations()

    service = ValidationService(store)
    errors = await service.validate(doc, validations, ignores=["patient_name"])
"""

from fieldforms.validation.extra import (
    EXTRA_VALIDATORS,
    iso_weeks_in_year,
    parse_duration,
    register_extra_validations,
)
from fieldforms.validation.messages import get_locale, get_message, translate
from fieldforms.validation.rewriter import resolve_validations
from fieldforms.validation.rules import (
    EvaluationError,
    FunctionRegistry,
    LexerError,
    ParseError,
    RuleResult,
)
from fieldforms.validation.rules.builtins import register_all_builtins
from fieldforms.validation.service import (
    ValidationService,
    build_attributes,
    extract_errors,
    get_messages,
    get_rules,
)
from fieldforms.validation.types import (
    ErrorDescriptor,
    ExtraValidation,
    ExtraValidationError,
    ResolvedSpec,
    RuleSyntaxError,
    ValidationFailure,
    ValidationSpec,
)

__all__ = [
    # Types
    "ErrorDescriptor",
    "ExtraValidation",
    "ResolvedSpec",
    "ValidationSpec",
    # Errors
    "EvaluationError",
    "ExtraValidationError",
    "LexerError",
    "ParseError",
    "RuleSyntaxError",
    "ValidationFailure",
    # Rules
    "FunctionRegistry",
    "RuleResult",
    "resolve_validations",
    # Extra validators
    "EXTRA_VALIDATORS",
    "iso_weeks_in_year",
    "parse_duration",
    # Messages
    "get_locale",
    "get_message",
    "translate",
    # Service
    "ValidationService",
    "build_attributes",
    "extract_errors",
    "get_messages",
    "get_rules",
    # Setup
    "register_all_builtins",
    "register_extra_validations",
]
