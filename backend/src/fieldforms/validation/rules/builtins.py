"""Built-in functions for the fieldforms rule grammar.

This module registers all built-in functions with the FunctionRegistry.
Call ``register_all_builtins()`` at application startup.

Every function receives the value of the property under test as its first
argument. Report values usually arrive as strings (SMS payloads), so numeric
functions coerce before comparing.

Categories:
- Presence: required, empty, optional
- String: alpha, alphaNumeric, email, lenMin, lenMax, lenEquals
- Number: numeric, integer, min, max, between
- Comparison: equals, equalsTo, in
- Pattern: regex
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from fieldforms.validation.rules.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)


def register_all_builtins() -> None:
    """Register all built-in functions with the FunctionRegistry."""
    _register_presence_functions()
    _register_string_functions()
    _register_number_functions()
    _register_comparison_functions()
    _register_pattern_functions()


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict)):
        return len(value) == 0
    return False


def _to_number(value: Any) -> Decimal | None:
    """Coerce a value to a finite Decimal, or None if it is not numeric.

    NaN and infinities count as non-numeric; NaN cannot be ordered.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _loose_equals(left: Any, right: Any) -> bool:
    """Compare numerically when both sides are numeric, as text otherwise."""
    left_num = _to_number(left)
    right_num = _to_number(right)
    if left_num is not None and right_num is not None:
        return left_num == right_num
    return _to_text(left) == _to_text(right)


# -----------------------------------------------------------------------------
# Presence Functions
# -----------------------------------------------------------------------------


def _required(value: Any) -> bool:
    return not _is_empty(value)


def _empty(value: Any) -> bool:
    return _is_empty(value)


def _register_presence_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="required",
            description="Value is present and not blank",
            category=FunctionCategory.PRESENCE,
            examples=["required", "required && integer"],
            implementation=_required,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="empty",
            description="Value is missing or blank",
            category=FunctionCategory.PRESENCE,
            examples=["empty || integer"],
            implementation=_empty,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="optional",
            description="Alias of empty, for rules like 'optional || lenMin(3)'",
            category=FunctionCategory.PRESENCE,
            examples=["optional || lenMin(3)"],
            implementation=_empty,
        )
    )


# -----------------------------------------------------------------------------
# String Functions
# -----------------------------------------------------------------------------


_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def _alpha(value: Any) -> bool:
    return _to_text(value).isalpha()


def _alpha_numeric(value: Any) -> bool:
    return _to_text(value).isalnum()


def _email(value: Any) -> bool:
    return bool(_EMAIL_PATTERN.match(_to_text(value)))


def _len_min(value: Any, length: Any) -> bool:
    return len(_to_text(value)) >= int(length)


def _len_max(value: Any, length: Any) -> bool:
    return len(_to_text(value)) <= int(length)


def _len_equals(value: Any, length: Any) -> bool:
    return len(_to_text(value)) == int(length)


def _register_string_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="alpha",
            description="Value contains only letters",
            category=FunctionCategory.STRING,
            examples=["alpha"],
            implementation=_alpha,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="alphaNumeric",
            description="Value contains only letters and digits",
            category=FunctionCategory.STRING,
            examples=["alphaNumeric && lenEquals(6)"],
            implementation=_alpha_numeric,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="email",
            description="Value looks like an email address",
            category=FunctionCategory.STRING,
            examples=["email"],
            implementation=_email,
        )
    )

    length_param = [FunctionParameter("length", "number", "Character count")]
    FunctionRegistry.register(
        FunctionDefinition(
            name="lenMin",
            description="Value is at least n characters long",
            category=FunctionCategory.STRING,
            parameters=length_param,
            examples=["lenMin(5)"],
            implementation=_len_min,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="lenMax",
            description="Value is at most n characters long",
            category=FunctionCategory.STRING,
            parameters=length_param,
            examples=["lenMax(20)"],
            implementation=_len_max,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="lenEquals",
            description="Value is exactly n characters long",
            category=FunctionCategory.STRING,
            parameters=length_param,
            examples=["lenEquals(5)"],
            implementation=_len_equals,
        )
    )


# -----------------------------------------------------------------------------
# Number Functions
# -----------------------------------------------------------------------------


_INTEGER_PATTERN = re.compile(r"^-?[0-9]+$")


def _numeric(value: Any) -> bool:
    return _to_number(value) is not None


def _integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return bool(_INTEGER_PATTERN.match(_to_text(value).strip()))


def _min(value: Any, bound: Any) -> bool:
    number = _to_number(value)
    limit = _to_number(bound)
    return number is not None and limit is not None and number >= limit


def _max(value: Any, bound: Any) -> bool:
    number = _to_number(value)
    limit = _to_number(bound)
    return number is not None and limit is not None and number <= limit


def _between(value: Any, low: Any, high: Any) -> bool:
    return _min(value, low) and _max(value, high)


def _register_number_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="numeric",
            description="Value is a number",
            category=FunctionCategory.NUMBER,
            examples=["numeric"],
            implementation=_numeric,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="integer",
            description="Value is a whole number",
            category=FunctionCategory.NUMBER,
            examples=["integer && min(1)"],
            implementation=_integer,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="min",
            description="Value is a number greater than or equal to n",
            category=FunctionCategory.NUMBER,
            parameters=[FunctionParameter("n", "number", "Lower bound")],
            examples=["min(0)"],
            implementation=_min,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="max",
            description="Value is a number less than or equal to n",
            category=FunctionCategory.NUMBER,
            parameters=[FunctionParameter("n", "number", "Upper bound")],
            examples=["max(40)"],
            implementation=_max,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="between",
            description="Value is a number within [low, high]",
            category=FunctionCategory.NUMBER,
            parameters=[
                FunctionParameter("low", "number", "Lower bound (inclusive)"),
                FunctionParameter("high", "number", "Upper bound (inclusive)"),
            ],
            examples=["between(1, 52)"],
            implementation=_between,
        )
    )


# -----------------------------------------------------------------------------
# Comparison Functions
# -----------------------------------------------------------------------------


def _equals(value: Any, expected: Any) -> bool:
    return _loose_equals(value, expected)


def _equals_to(value: Any, record: dict[str, Any], other_field: Any) -> bool:
    return _loose_equals(value, record.get(str(other_field)))


def _in(value: Any, *options: Any) -> bool:
    return any(_loose_equals(value, option) for option in options)


def _register_comparison_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="equals",
            description="Value equals the given literal",
            category=FunctionCategory.COMPARISON,
            parameters=[FunctionParameter("expected", "any", "Expected value")],
            examples=["equals('yes')"],
            implementation=_equals,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="equalsTo",
            description="Value equals the value of another field",
            category=FunctionCategory.COMPARISON,
            parameters=[FunctionParameter("field", "string", "Other field name")],
            examples=["equalsTo('confirm_phone')"],
            implementation=_equals_to,
            uses_record=True,
        )
    )
    FunctionRegistry.register(
        FunctionDefinition(
            name="in",
            description="Value is one of the given options",
            category=FunctionCategory.COMPARISON,
            parameters=[
                FunctionParameter("options", "any", "Allowed values", variadic=True)
            ],
            examples=["in('M', 'F')"],
            implementation=_in,
        )
    )


# -----------------------------------------------------------------------------
# Pattern Functions
# -----------------------------------------------------------------------------


_REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}


def _regex(value: Any, pattern: Any, flags: Any = "") -> bool:
    """Search value for pattern; flags is a string of i/m/s letters."""
    re_flags = 0
    for letter in str(flags or ""):
        re_flags |= _REGEX_FLAGS.get(letter, 0)
    return re.search(str(pattern), _to_text(value), re_flags) is not None


def _register_pattern_functions() -> None:
    FunctionRegistry.register(
        FunctionDefinition(
            name="regex",
            description="Value matches a regular expression (search semantics)",
            category=FunctionCategory.PATTERN,
            parameters=[
                FunctionParameter("pattern", "string", "Regular expression"),
                FunctionParameter("flags", "string", "Any of i, m, s", required=False),
            ],
            examples=["regex('^[0-9]{5}$')", "regex('^yes$', 'i')"],
            implementation=_regex,
        )
    )
