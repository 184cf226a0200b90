"""Parser for the fieldforms rule grammar.

Converts a token stream into a list of entities. Rules are flat infix
sequences of function calls and logical operators; parentheses produce
nested blocks:

    lenMin(5) && (integer || empty)

parses to:

    [Block(sub=[Call("lenMin", [5]), Operator("&&"),
                Block(sub=[Call("integer"), Operator("||"), Call("empty")])])]

The outermost entity is always a single root Block. Operator precedence
(``!`` over ``&&`` over ``||``) is applied by the evaluator, not here.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator

from fieldforms.validation.rules.lexer import Token, TokenType, tokenize


# -----------------------------------------------------------------------------
# Entity Types
# -----------------------------------------------------------------------------


@dataclass
class Entity:
    """Base class for parsed rule entities."""
    pass


@dataclass
class Call(Entity):
    """A function call, with or without parentheses (e.g., integer, lenMin(5))."""
    func_name: str
    func_args: list[Any] = field(default_factory=list)


@dataclass
class Operator(Entity):
    """A logical operator: "&&", "||" or "!"."""
    operator: str


@dataclass
class Block(Entity):
    """A parenthesized group, or the root of a rule."""
    sub: list[Entity] = field(default_factory=list)

    def calls(self) -> Iterator[Call]:
        """Yield every Call in this block, descending into nested blocks."""
        for entity in self.sub:
            if isinstance(entity, Call):
                yield entity
            elif isinstance(entity, Block):
                yield from entity.calls()


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(Exception):
    """Error during parsing."""

    def __init__(self, message: str, token: Token):
        self.token = token
        super().__init__(f"{message} at position {token.position}")


_LOGICAL_OPS = {
    TokenType.AND: "&&",
    TokenType.OR: "||",
}

_LITERALS = (TokenType.NUMBER, TokenType.STRING, TokenType.BOOLEAN, TokenType.NULL)


class Parser:
    """Recursive descent parser for the rule grammar.

    Usage:
        parser = Parser(tokenize("lenMin(5) && lenMax(10)"))
        entities = parser.parse()
    """

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.position = 0

    def parse(self) -> list[Entity]:
        """Parse the tokens and return the entity list (one root Block)."""
        if not self.tokens or self.tokens[0].type == TokenType.EOF:
            raise ParseError("Empty rule", Token(TokenType.EOF, None, 0))

        root = Block(self._parse_sequence())

        if not self._is_at_end():
            raise ParseError(
                f"Unexpected token '{self._current().value}'",
                self._current(),
            )

        return [root]

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        """Get current token."""
        if self.position >= len(self.tokens):
            end = self.tokens[-1].position if self.tokens else 0
            return Token(TokenType.EOF, None, end)
        return self.tokens[self.position]

    def _is_at_end(self) -> bool:
        return self._current().type == TokenType.EOF

    def _advance(self) -> Token:
        """Consume and return current token."""
        token = self._current()
        self.position += 1
        return token

    def _match(self, *types: TokenType) -> bool:
        return self._current().type in types

    def _consume(self, token_type: TokenType, message: str) -> Token:
        """Consume a token of the expected type, or raise error."""
        if self._current().type == token_type:
            return self._advance()
        raise ParseError(message, self._current())

    # -------------------------------------------------------------------------
    # Grammar
    # -------------------------------------------------------------------------

    def _parse_sequence(self) -> list[Entity]:
        """Parse operand ((&& | ||) operand)* into a flat entity list."""
        entities = self._parse_operand()

        while self._current().type in _LOGICAL_OPS:
            entities.append(Operator(_LOGICAL_OPS[self._advance().type]))
            entities.extend(self._parse_operand())

        return entities

    def _parse_operand(self) -> list[Entity]:
        """Parse an operand with any leading negations."""
        entities: list[Entity] = []

        while self._match(TokenType.NOT):
            self._advance()
            entities.append(Operator("!"))

        token = self._current()

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            entities.append(self._parse_call(str(token.value)))
            return entities

        if token.type == TokenType.LPAREN:
            self._advance()
            block = Block(self._parse_sequence())
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            entities.append(block)
            return entities

        if token.type == TokenType.EOF:
            raise ParseError("Unexpected end of rule", token)

        raise ParseError(f"Unexpected token '{token.value}'", token)

    def _parse_call(self, name: str) -> Call:
        """Parse optional call arguments after a function name."""
        if not self._match(TokenType.LPAREN):
            return Call(name)

        self._advance()
        arguments: list[Any] = []

        if not self._match(TokenType.RPAREN):
            arguments.append(self._parse_argument())

            while self._match(TokenType.COMMA):
                self._advance()
                arguments.append(self._parse_argument())

        self._consume(TokenType.RPAREN, "Expected ')' after arguments")

        return Call(name, arguments)

    def _parse_argument(self) -> Any:
        """Parse a literal argument."""
        token = self._current()
        if token.type in _LITERALS:
            self._advance()
            return token.value
        raise ParseError(f"Expected literal argument, got '{token.value}'", token)


def parse(tokens: list[Token]) -> list[Entity]:
    """Convenience function to parse a token list.

    Args:
        tokens: Tokens produced by ``tokenize``

    Returns:
        The entity list (a single root Block)
    """
    return Parser(tokens).parse()


def parse_rule(source: str) -> list[Entity]:
    """Tokenize and parse a rule string in one step."""
    return parse(tokenize(source))
