"""Evaluator for the fieldforms rule grammar.

Evaluates parsed rules against the value of the property each rule is
declared for. Deferred functions (datastore-backed checks that run in the
async stage) evaluate to True here so that the property still gets a slot in
the result set.
"""

from dataclasses import dataclass, field
from typing import Any

from fieldforms.validation.rules.functions import FunctionRegistry
from fieldforms.validation.rules.lexer import tokenize
from fieldforms.validation.rules.parser import Block, Call, Entity, Operator, parse


class EvaluationError(Exception):
    """Error during rule evaluation."""
    pass


@dataclass
class RuleResult:
    """Per-property outcome of evaluating a rule set.

    Attributes:
        results: Property name to validity, in rule declaration order
    """

    results: dict[str, bool] = field(default_factory=dict)

    def fields(self) -> dict[str, bool]:
        """Return the property to validity mapping."""
        return self.results

    def errors(self) -> list[str]:
        """Names of properties whose rule evaluated false."""
        return [name for name, valid in self.results.items() if not valid]

    def is_valid(self) -> bool:
        return all(self.results.values())


class Evaluator:
    """Evaluates a rule's entity list for one property.

    Usage:
        evaluator = Evaluator(value="12345", record={"patient_id": "12345"})
        evaluator.evaluate(parse(tokenize("integer && lenEquals(5)")))
    """

    def __init__(self, value: Any, record: dict[str, Any]):
        self.value = value
        self.record = record

    def evaluate(self, entities: list[Entity]) -> bool:
        """Evaluate a top-level entity list."""
        return self._eval_sequence(entities)

    def _eval_sequence(self, entities: list[Entity]) -> bool:
        """Evaluate a flat infix sequence: ``!`` binds first, then ``&&``, then ``||``."""
        groups: list[list[bool]] = [[]]
        negate = False

        for entity in entities:
            if isinstance(entity, Operator):
                if entity.operator == "!":
                    negate = not negate
                elif entity.operator == "||":
                    groups.append([])
                elif entity.operator != "&&":
                    raise EvaluationError(f"Unknown operator: {entity.operator}")
                continue

            result = self._eval_entity(entity)
            if negate:
                result = not result
                negate = False
            groups[-1].append(result)

        return any(all(group) for group in groups if group)

    def _eval_entity(self, entity: Entity) -> bool:
        if isinstance(entity, Block):
            return self._eval_sequence(entity.sub)
        if isinstance(entity, Call):
            return self._eval_call(entity)
        raise EvaluationError(f"Unknown entity type: {type(entity).__name__}")

    def _eval_call(self, call: Call) -> bool:
        if not FunctionRegistry.is_registered(call.func_name):
            raise EvaluationError(f"Unknown function: {call.func_name}")

        func_def = FunctionRegistry.get(call.func_name)

        if func_def.deferred:
            return True

        args: list[Any] = [self.value]
        if func_def.uses_record:
            args.append(self.record)
        args.extend(call.func_args)

        try:
            return bool(func_def.implementation(*args))
        except Exception as e:
            raise EvaluationError(f"Error calling {call.func_name}: {e}") from e


# -----------------------------------------------------------------------------
# Convenience functions
# -----------------------------------------------------------------------------


def validate(rules: dict[str, str], attributes: dict[str, Any]) -> RuleResult:
    """Evaluate every rule against its property's value.

    This is the main entry point of the rule grammar.

    Args:
        rules: Property name to rule string
        attributes: Flattened document attributes

    Returns:
        RuleResult with one boolean per property in ``rules``

    Raises:
        LexerError, ParseError: If a rule is malformed
        EvaluationError: If a rule references an unknown function or a
            function fails

    Example:
        result = validate({"age": "integer && between(0, 120)"}, {"age": "34"})
        # result.fields() == {"age": True}
    """
    result = RuleResult()
    for name, rule in rules.items():
        evaluator = Evaluator(attributes.get(name), attributes)
        result.results[name] = evaluator.evaluate(parse(tokenize(rule)))
    return result
