"""Extra validators for fieldforms.

These validators cannot be expressed in the rule grammar because they read
other reports from the datastore. They are called from rule strings like
grammar functions (``unique('patient_id')``) and run after the grammar has
been evaluated.

Available validators:
- unique: No other report shares the field value(s)
- uniqueWithin: Same as unique, limited to a trailing time window
- exists: Another report of a given form shares the field value
- isISOWeek: Week (and optional year) fields form a valid ISO week
"""

import asyncio
import calendar
import logging
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from fieldforms.store.adapter import REPORTS_BY_FREETEXT, DocumentStore, index_value
from fieldforms.validation.rules.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from fieldforms.validation.types import ExtraValidation, ResolvedSpec

logger = logging.getLogger(__name__)

# Handler signature: async (attributes, spec, store) -> valid
ExtraValidator = Callable[[dict[str, Any], ResolvedSpec, DocumentStore], Awaitable[bool]]


def _now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Durations
# =============================================================================


_DURATION_UNITS = {
    "ms": "milliseconds", "millisecond": "milliseconds", "milliseconds": "milliseconds",
    "s": "seconds", "second": "seconds", "seconds": "seconds",
    "m": "minutes", "minute": "minutes", "minutes": "minutes",
    "h": "hours", "hour": "hours", "hours": "hours",
    "d": "days", "day": "days", "days": "days",
    "w": "weeks", "week": "weeks", "weeks": "weeks",
    "M": "months", "month": "months", "months": "months",
    "y": "years", "year": "years", "years": "years",
}


def parse_duration(duration: str) -> tuple[int, str]:
    """Parse "<integer> <unit>" (e.g., "7 days") into (amount, canonical unit).

    Raises:
        ValueError: If the amount is not an integer or the unit is unknown
    """
    parts = str(duration).split()
    if len(parts) != 2:
        raise ValueError(f"Invalid duration: {duration!r}")

    amount_text, unit_text = parts
    try:
        amount = int(amount_text)
    except ValueError:
        raise ValueError(f"Invalid duration amount: {duration!r}") from None

    # Single-letter shorthands are case sensitive ("m" minutes, "M" months)
    unit = _DURATION_UNITS.get(unit_text)
    if unit is None and len(unit_text) > 1:
        unit = _DURATION_UNITS.get(unit_text.lower())
    if unit is None:
        raise ValueError(f"Unknown duration unit: {duration!r}")
    return amount, unit


def _subtract_months(moment: datetime, months: int) -> datetime:
    """Step back whole calendar months, clamping the day to the month's length."""
    index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def window_start(duration: str, now: datetime | None = None) -> datetime:
    """Return ``now - duration``."""
    now = now or _now()
    amount, unit = parse_duration(duration)
    if unit == "months":
        return _subtract_months(now, amount)
    if unit == "years":
        return _subtract_months(now, amount * 12)
    return now - timedelta(**{unit: amount})


# =============================================================================
# Existence check
# =============================================================================


def _intersect(responses: list[dict[str, Any]]) -> list[str]:
    """Ids present in every response, in the order of the first."""
    if not responses:
        return []

    id_sets = [{row["id"] for row in response["rows"]} for response in responses[1:]]
    ids: list[str] = []
    for row in responses[0]["rows"]:
        doc_id = row["id"]
        if doc_id not in ids and all(doc_id in s for s in id_sets):
            ids.append(doc_id)
    return ids


async def _exists(
    store: DocumentStore,
    doc: dict[str, Any],
    fields: list[str],
    additional_filter: str | None = None,
    start_date: int | None = None,
) -> bool:
    """Check whether another error-free report matches all the given fields.

    Args:
        store: Datastore to query
        doc: Attributes of the report under validation
        fields: Fields whose (lower-cased) values must all match
        additional_filter: Extra index key that must also match (e.g., "form:R")
        start_date: If set, only reports with reported_date >= start_date (ms) count

    Raises:
        ValueError: If no fields are given
    """
    if not fields:
        raise ValueError('No arguments provided to "exists" validation function')

    keys: list[str] = []
    for field in fields:
        value = index_value(doc.get(field))
        if value is None:
            # Nothing to compare against
            return False
        keys.append(f"{field}:{value}")
    if additional_filter:
        keys.append(additional_filter.lower())

    responses = await asyncio.gather(
        *(store.query(REPORTS_BY_FREETEXT, key=[key]) for key in keys)
    )

    ids = [doc_id for doc_id in _intersect(list(responses)) if doc_id != doc.get("_id")]
    if not ids:
        return False

    result = await store.all_docs(keys=ids, include_docs=True)
    for row in result["rows"]:
        found = row.get("doc")
        if not found or found.get("errors"):
            continue
        if start_date is not None and (found.get("reported_date") or 0) < start_date:
            continue
        return True
    return False


# =============================================================================
# Validators
# =============================================================================


async def unique(attributes: dict[str, Any], spec: ResolvedSpec, store: DocumentStore) -> bool:
    """True if no other error-free report shares all the listed field values."""
    fields = [str(arg) for arg in spec.func_args]
    return not await _exists(store, attributes, fields)


async def unique_within(
    attributes: dict[str, Any], spec: ResolvedSpec, store: DocumentStore
) -> bool:
    """Like unique, but only against reports within the trailing duration.

    The last argument is the duration, e.g. ``uniqueWithin('patient_id', '7 days')``.
    """
    args = [str(arg) for arg in spec.func_args]
    if not args:
        raise ValueError('No arguments provided to "uniqueWithin" validation function')

    start = window_start(args.pop())
    start_date = int(start.timestamp() * 1000)
    return not await _exists(store, attributes, args, start_date=start_date)


async def exists(attributes: dict[str, Any], spec: ResolvedSpec, store: DocumentStore) -> bool:
    """True if another error-free report of the given form has the same field value.

    Usage: ``exists('REGISTRATION', 'patient_id')``.
    """
    if len(spec.func_args) < 2:
        raise ValueError('"exists" validation requires a form name and a field name')

    form_name, field_name = str(spec.func_args[0]), str(spec.func_args[1])
    return await _exists(
        store,
        attributes,
        [field_name],
        additional_filter=f"form:{form_name}",
    )


def iso_weeks_in_year(year: int) -> int:
    """Number of ISO-8601 weeks (52 or 53) in a year."""
    return date(year, 12, 28).isocalendar()[1]


_WEEK_PATTERN = re.compile(r"[0-9]{1,2}")
_YEAR_PATTERN = re.compile(r"[0-9]{4}")


async def is_iso_week(
    attributes: dict[str, Any], spec: ResolvedSpec, store: DocumentStore
) -> bool:
    """True if the week field is a valid ISO week of the year field (or current year).

    Usage: ``isISOWeek('week')`` or ``isISOWeek('week', 'year')``.
    """
    week_field = str(spec.func_args[0]) if spec.func_args else None
    year_field = str(spec.func_args[1]) if len(spec.func_args) > 1 else None

    if week_field is None or week_field not in attributes or (
        year_field and year_field not in attributes
    ):
        logger.error("isISOWeek validation failed: input field(s) do not exist")
        return False

    week = str(attributes[week_field])
    year = str(attributes[year_field]) if year_field else str(_now().year)

    valid = (
        _WEEK_PATTERN.fullmatch(week) is not None
        and _YEAR_PATTERN.fullmatch(year) is not None
        and int(year) >= 1
        and 1 <= int(week) <= iso_weeks_in_year(int(year))
    )
    if not valid:
        logger.error(
            "isISOWeek validation failed: week %s is not a valid ISO week of %s",
            week,
            year,
        )
    return valid


EXTRA_VALIDATORS: dict[ExtraValidation, ExtraValidator] = {
    ExtraValidation.UNIQUE: unique,
    ExtraValidation.UNIQUE_WITHIN: unique_within,
    ExtraValidation.EXISTS: exists,
    ExtraValidation.IS_ISO_WEEK: is_iso_week,
}


# =============================================================================
# Registration
# =============================================================================


_DESCRIPTIONS = {
    ExtraValidation.UNIQUE: (
        "No other report shares the value(s) of the listed fields",
        [FunctionParameter("fields", "string", "Field names", variadic=True)],
        ["unique('patient_id')", "unique('patient_id', 'lmp')"],
    ),
    ExtraValidation.UNIQUE_WITHIN: (
        "No other report within the trailing duration shares the field value(s)",
        [
            FunctionParameter("fields", "string", "Field names", variadic=True),
            FunctionParameter("duration", "string", "e.g. '7 days'"),
        ],
        ["uniqueWithin('patient_id', '7 days')"],
    ),
    ExtraValidation.EXISTS: (
        "A report of the given form with the same field value exists",
        [
            FunctionParameter("form", "string", "Form code"),
            FunctionParameter("field", "string", "Field name"),
        ],
        ["exists('R', 'patient_id')"],
    ),
    ExtraValidation.IS_ISO_WEEK: (
        "Week field is a valid ISO week of the year field (or current year)",
        [
            FunctionParameter("week", "string", "Week field name"),
            FunctionParameter("year", "string", "Year field name", required=False),
        ],
        ["isISOWeek('week', 'year')"],
    ),
}


def register_extra_validations() -> None:
    """Register the extra validators as deferred rule functions."""
    for validation in ExtraValidation:
        description, parameters, examples = _DESCRIPTIONS[validation]
        FunctionRegistry.register(
            FunctionDefinition(
                name=validation.value,
                description=description,
                category=FunctionCategory.DEFERRED,
                parameters=parameters,
                examples=examples,
            )
        )
