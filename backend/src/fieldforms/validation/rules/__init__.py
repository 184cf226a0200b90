"""Rule grammar for fieldforms validations.

This module provides:
- Lexer: Tokenizes rule strings
- Parser: Produces the entity list from tokens
- FunctionRegistry: Registry for rule functions
- Evaluator: Evaluates rules against document attributes
"""

from fieldforms.validation.rules.evaluator import (
    EvaluationError,
    Evaluator,
    RuleResult,
    validate,
)
from fieldforms.validation.rules.functions import (
    FunctionCategory,
    FunctionDefinition,
    FunctionParameter,
    FunctionRegistry,
)
from fieldforms.validation.rules.lexer import (
    Lexer,
    LexerError,
    Token,
    TokenType,
    tokenize,
)
from fieldforms.validation.rules.parser import (
    Block,
    Call,
    Entity,
    Operator,
    ParseError,
    Parser,
    parse,
    parse_rule,
)

__all__ = [
    # Evaluator
    "EvaluationError",
    "Evaluator",
    "RuleResult",
    "validate",
    # Functions
    "FunctionCategory",
    "FunctionDefinition",
    "FunctionParameter",
    "FunctionRegistry",
    # Lexer
    "Lexer",
    "LexerError",
    "Token",
    "TokenType",
    "tokenize",
    # Parser
    "Block",
    "Call",
    "Entity",
    "Operator",
    "ParseError",
    "Parser",
    "parse",
    "parse_rule",
]
