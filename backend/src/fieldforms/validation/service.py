"""Validation service for fieldforms reports.

Runs a report through the full pipeline:
1. Resolve: parse rules, attach extra validator calls (pure)
2. Evaluate: run the rule grammar once over the flattened attributes
3. Augment: run extra validators one at a time, in declaration order
4. Reduce: turn failed properties into localized error descriptors
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable

from fieldforms.store.adapter import DocumentStore
from fieldforms.validation import rules
from fieldforms.validation.extra import EXTRA_VALIDATORS
from fieldforms.validation.messages import DEFAULT_LOCALE, get_locale, get_message
from fieldforms.validation.rewriter import resolve_validations
from fieldforms.validation.rules import EvaluationError, LexerError, ParseError, RuleResult
from fieldforms.validation.types import (
    ErrorDescriptor,
    ExtraValidationError,
    ResolvedSpec,
    RuleSyntaxError,
    ValidationSpec,
)

if TYPE_CHECKING:
    from fieldforms.config import Settings

logger = logging.getLogger(__name__)


# =============================================================================
# Reduction helpers
# =============================================================================


def get_rules(validations: Iterable[ValidationSpec]) -> dict[str, str]:
    """Map property to rule for validations that declare both.

    A later validation for the same property replaces an earlier one.
    """
    return {v.property: v.rule for v in validations if v.property and v.rule}


def get_messages(
    validations: Iterable[ValidationSpec],
    locale: str,
    translations: dict[str, dict[str, str]] | None = None,
    default_locale: str = DEFAULT_LOCALE,
) -> dict[str, str | None]:
    """Map property to its localized message.

    Only validations with a property and a message or translation key
    contribute.
    """
    messages: dict[str, str | None] = {}
    for validation in validations:
        if validation.property and (validation.message or validation.translation_key):
            messages[validation.property] = get_message(
                validation, locale, translations, default_locale
            )
    return messages


def extract_errors(
    result: dict[str, bool],
    messages: dict[str, str | None],
    ignores: str | Iterable[str] | None = None,
) -> list[ErrorDescriptor]:
    """Build error descriptors for every invalid, non-ignored property.

    Args:
        result: Property to validity, in evaluation order
        messages: Property to localized message
        ignores: Property name(s) that are always considered valid

    Returns:
        Error descriptors in ``result`` order; empty if everything is valid
    """
    if ignores is None:
        ignored: set[str] = set()
    elif isinstance(ignores, str):
        ignored = {ignores}
    else:
        ignored = set(ignores)

    return [
        ErrorDescriptor(code=f"invalid_{name}", message=messages.get(name))
        for name, valid in result.items()
        if not valid and name not in ignored
    ]


def build_attributes(doc: dict[str, Any]) -> dict[str, Any]:
    """Flatten a report: top-level keys first, then ``fields`` (later wins)."""
    attributes = dict(doc)
    fields = doc.get("fields")
    if isinstance(fields, dict):
        attributes.update(fields)
    return attributes


# =============================================================================
# Validation Service
# =============================================================================


class ValidationService:
    """Validates reports against declared validations.

    Extra validators read from the store and run strictly one after the
    other; a later validator never starts before the previous one finished.
    """

    def __init__(
        self,
        store: DocumentStore,
        translations: dict[str, dict[str, str]] | None = None,
        default_locale: str = DEFAULT_LOCALE,
        forms: dict[str, list[ValidationSpec]] | None = None,
    ):
        self.store = store
        self.translations = translations or {}
        self.default_locale = default_locale
        self.forms = forms or {}

    @classmethod
    def from_settings(cls, store: DocumentStore, settings: Settings) -> ValidationService:
        return cls(
            store,
            translations=settings.translations,
            default_locale=settings.default_locale,
            forms=settings.forms,
        )

    async def validate(
        self,
        doc: dict[str, Any],
        validations: Iterable[ValidationSpec | dict[str, Any]] | None = None,
        ignores: str | Iterable[str] | None = None,
    ) -> list[ErrorDescriptor]:
        """Validate a report.

        Args:
            doc: The report; its ``fields`` are merged over its top-level keys
            validations: Declared validations (specs or dicts), in order
            ignores: Property name(s) that are always considered valid

        Returns:
            Error descriptors; empty list means the report is valid

        Raises:
            RuleSyntaxError: If any rule fails to parse or evaluate
            ExtraValidationError: If an extra validator fails
        """
        specs = [
            v if isinstance(v, ValidationSpec) else ValidationSpec.from_dict(v)
            for v in validations or []
        ]

        resolved, errors = resolve_validations(specs)
        if errors:
            raise RuleSyntaxError(errors)

        attributes = build_attributes(doc)

        try:
            result = rules.validate(get_rules(resolved), attributes)
        except (LexerError, ParseError, EvaluationError) as e:
            logger.error("error evaluating validations: %s", e)
            raise RuleSyntaxError([f"Error on rule validations: {e}"]) from e

        await self._run_extra_validations(resolved, attributes, result)

        messages = get_messages(
            resolved,
            get_locale(doc, self.default_locale),
            self.translations,
            self.default_locale,
        )
        return extract_errors(result.fields(), messages, ignores)

    async def validate_report(
        self,
        doc: dict[str, Any],
        ignores: str | Iterable[str] | None = None,
    ) -> list[ErrorDescriptor]:
        """Validate a report against the validations configured for its form."""
        return await self.validate(doc, self.forms.get(str(doc.get("form")), []), ignores)

    async def _run_extra_validations(
        self,
        resolved: list[ResolvedSpec],
        attributes: dict[str, Any],
        result: RuleResult,
    ) -> None:
        """Run extra validators in order, recording only negative results.

        Properties are valid unless proven otherwise, so a True result never
        overrides a False from the grammar.
        """
        for spec in resolved:
            if spec.validation is None:
                continue

            handler = EXTRA_VALIDATORS[spec.validation]
            try:
                valid = await handler(attributes, spec, self.store)
            except Exception as e:
                logger.error('Error running "%s" validation: %s', spec.func_name, e)
                raise ExtraValidationError(spec.func_name, str(e)) from e

            if valid is False:
                result.results[spec.property] = False
