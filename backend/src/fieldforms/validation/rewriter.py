"""Rule resolution for fieldforms validations.

Grammar rules and extra validators cannot be combined in one rule string.
A property needing both declares two validations::

    - property: patient_id
      rule: regex('^[0-9]{5}$')
      message: [{content: Patient ID must be 5 numbers., locale: en}]
    - property: patient_id
      rule: unique('patient_id')
      message: [{content: Patient ID must be unique., locale: en}]

Resolution turns the second one into a ``patient_id_unique`` property so
that the grammar still assigns it its own result slot, and records the
extra validator call so the async stage can fill in the real result.
"""

import logging
from typing import Iterable

from fieldforms.validation.rules import (
    Block,
    Entity,
    LexerError,
    ParseError,
    parse,
    tokenize,
)
from fieldforms.validation.types import ExtraValidation, ResolvedSpec, ValidationSpec

logger = logging.getLogger(__name__)

_EXTRA_BY_NAME = {validation.value: validation for validation in ExtraValidation}


def _copy(spec: ValidationSpec, **changes) -> ResolvedSpec:
    values = {
        "property": spec.property,
        "rule": spec.rule,
        "message": spec.message,
        "translation_key": spec.translation_key,
    }
    if isinstance(spec, ResolvedSpec):
        values.update(
            validation=spec.validation,
            func_args=spec.func_args,
            field=spec.field,
        )
    values.update(changes)
    return ResolvedSpec(**values)


def _resolve_spec(spec: ValidationSpec, entities: list[Entity]) -> ResolvedSpec:
    """Attach the first extra validator call found in the rule's entities."""
    found = []
    for entity in entities:
        if isinstance(entity, Block) and entity.sub:
            for call in entity.calls():
                logger.debug("validation rule entity sub %s", call.func_name)
                if call.func_name in _EXTRA_BY_NAME:
                    found.append(call)

    if not found:
        return _copy(spec)

    if len(found) > 1:
        logger.warning(
            "Rule %r calls more than one extra validator; only %s is applied",
            spec.rule,
            found[0].func_name,
        )

    call = found[0]
    validation = _EXTRA_BY_NAME[call.func_name]
    suffix = f"_{validation.value}"

    if spec.property.endswith(suffix):
        # Already resolved
        field = spec.property[: -len(suffix)]
        if isinstance(spec, ResolvedSpec) and spec.field:
            field = spec.field
        return _copy(
            spec,
            validation=validation,
            func_args=list(call.func_args),
            field=field,
        )

    return _copy(
        spec,
        property=spec.property + suffix,
        validation=validation,
        func_args=list(call.func_args),
        field=spec.property,
    )


def resolve_validations(
    validations: Iterable[ValidationSpec],
) -> tuple[list[ResolvedSpec], list[str]]:
    """Parse every rule and resolve extra validator calls.

    The input is never modified. Parse failures do not stop the remaining
    rules from being checked; they are collected and returned.

    Args:
        validations: Declared validations, in order

    Returns:
        Tuple of (resolved specs in declaration order, parse error messages).
        When the error list is non-empty the resolved list is incomplete and
        must not be evaluated.
    """
    resolved: list[ResolvedSpec] = []
    errors: list[str] = []

    for spec in validations:
        if not spec.rule:
            resolved.append(_copy(spec))
            continue

        try:
            logger.debug("validation rule %s", spec.rule)
            entities = parse(tokenize(spec.rule))
        except (LexerError, ParseError) as e:
            logger.error("error parsing validation %r: %s", spec.rule, e)
            errors.append(f"Error on rule validations: {e}")
            continue

        resolved.append(_resolve_spec(spec, entities))

    return resolved, errors
