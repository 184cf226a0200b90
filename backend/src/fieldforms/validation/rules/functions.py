"""Function registry for the fieldforms rule grammar.

Rule functions test the value of the property a rule is declared for
(e.g. ``lenMin(5)``, ``integer``). Each function is registered with metadata
for documentation. Names are matched case-insensitively.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


class FunctionCategory(Enum):
    """Categories for organizing functions in documentation."""

    PRESENCE = "presence"
    STRING = "string"
    NUMBER = "number"
    COMPARISON = "comparison"
    PATTERN = "pattern"
    DEFERRED = "deferred"  # Evaluated asynchronously against the datastore


@dataclass
class FunctionParameter:
    """Definition of a function parameter.

    Attributes:
        name: Parameter name
        type: Expected type ("string", "number", "any", etc.)
        description: Human-readable description
        required: Whether this parameter is required
        variadic: If True, this parameter accepts multiple values
    """

    name: str
    type: str
    description: str
    required: bool = True
    variadic: bool = False


@dataclass
class FunctionDefinition:
    """Complete definition of a rule function.

    Attributes:
        name: Function name as used in rules
        description: Human-readable description
        category: Category for documentation organization
        parameters: Explicit parameters (the tested value is implicit)
        examples: Example rules using this function
        implementation: ``(value, *args) -> bool``, or None for deferred functions
        uses_record: If True, the implementation is called as
            ``(value, record, *args)`` with the full attribute map
    """

    name: str
    description: str
    category: FunctionCategory
    parameters: list[FunctionParameter] = field(default_factory=list)
    examples: list[str] = field(default_factory=list)
    implementation: Callable[..., bool] | None = None
    uses_record: bool = False

    @property
    def deferred(self) -> bool:
        return self.implementation is None

    def to_dict(self) -> dict[str, Any]:
        """Export for documentation endpoints."""
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "parameters": [
                {
                    "name": p.name,
                    "type": p.type,
                    "description": p.description,
                    "required": p.required,
                    "variadic": p.variadic,
                }
                for p in self.parameters
            ],
            "deferred": self.deferred,
            "examples": self.examples,
        }


class FunctionRegistry:
    """Registry for rule functions.

    Example:
        FunctionRegistry.register(FunctionDefinition(
            name="lenMin",
            description="Value is at least n characters long",
            ...
        ))

        func = FunctionRegistry.get("lenmin")
        func.implementation("hello", 3)  # True
    """

    _functions: dict[str, FunctionDefinition] = {}

    @classmethod
    def register(cls, func_def: FunctionDefinition) -> None:
        """Register a function definition.

        Args:
            func_def: Complete function definition with implementation
        """
        cls._functions[func_def.name.lower()] = func_def

    @classmethod
    def get(cls, name: str) -> FunctionDefinition:
        """Get a function definition by name.

        Raises:
            ValueError: If function is not registered
        """
        key = name.lower()
        if key not in cls._functions:
            raise ValueError(f"Unknown function: {name}")
        return cls._functions[key]

    @classmethod
    def is_registered(cls, name: str) -> bool:
        """Check if a function is registered."""
        return name.lower() in cls._functions

    @classmethod
    def list_all(cls) -> list[FunctionDefinition]:
        """List all registered functions."""
        return list(cls._functions.values())

    @classmethod
    def list_by_category(cls, category: FunctionCategory) -> list[FunctionDefinition]:
        """List functions in a specific category."""
        return [f for f in cls._functions.values() if f.category == category]

    @classmethod
    def export_documentation(cls) -> dict[str, Any]:
        """Export full registry for documentation or API endpoint.

        Returns:
            Dict with all function definitions organized by category
        """
        by_category: dict[str, list[dict[str, Any]]] = {}
        for func_def in cls._functions.values():
            by_category.setdefault(func_def.category.value, []).append(func_def.to_dict())

        return {
            "functions": {f.name: f.to_dict() for f in cls._functions.values()},
            "byCategory": by_category,
        }

    @classmethod
    def clear(cls) -> None:
        """Clear all registrations. Primarily for testing."""
        cls._functions.clear()
