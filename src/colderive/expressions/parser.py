"""Parser for the colderive expression DSL.

Converts a stream of tokens into an Abstract Syntax Tree (AST).
Uses recursive descent parsing with a precedence table for binary operators.

Operator Precedence (lowest to highest):
1. || (or)
2. && (and)
3. == != < <= > >= in not_in
4. + -
5. * / %
6. ! (not) - (unary)
7. . (member access) () (function call) [] (index)
"""

from dataclasses import dataclass
from typing import Any, Iterator

from colderive.expressions.lexer import Lexer, Token, TokenType
from colderive.expressions.result import NO_VALUE


# -----------------------------------------------------------------------------
# AST Node Types
# -----------------------------------------------------------------------------


@dataclass
class ASTNode:
    """Base class for AST nodes."""

    def children(self) -> list["ASTNode"]:
        return []


@dataclass
class Literal(ASTNode):
    """A literal value (number, string, boolean, null, novalue)."""
    value: Any


@dataclass
class Identifier(ASTNode):
    """A root name reference (normally ``item``)."""
    name: str


@dataclass
class MemberAccess(ASTNode):
    """Dot notation member access (e.g., item.Priority)."""
    object: ASTNode
    member: str

    def children(self) -> list[ASTNode]:
        return [self.object]


@dataclass
class IndexAccess(ASTNode):
    """Bracket notation index access (e.g., item["Owner"], tags[0])."""
    object: ASTNode
    index: ASTNode

    def children(self) -> list[ASTNode]:
        return [self.object, self.index]


@dataclass
class BinaryOp(ASTNode):
    """Binary operation (e.g., a + b, x == y)."""
    operator: str
    left: ASTNode
    right: ASTNode

    def children(self) -> list[ASTNode]:
        return [self.left, self.right]


@dataclass
class UnaryOp(ASTNode):
    """Unary operation (e.g., !x, -y)."""
    operator: str
    operand: ASTNode

    def children(self) -> list[ASTNode]:
        return [self.operand]


@dataclass
class FunctionCall(ASTNode):
    """Function call; ``name`` is dotted for extension functions (e.g., helpers.owner)."""
    name: str
    arguments: list[ASTNode]

    def children(self) -> list[ASTNode]:
        return list(self.arguments)


@dataclass
class ArrayLiteral(ASTNode):
    """Array literal (e.g., [1, 2, 3], ["a", "b"])."""
    elements: list[ASTNode]

    def children(self) -> list[ASTNode]:
        return list(self.elements)


def walk(node: ASTNode) -> Iterator[ASTNode]:
    """Yield node and all of its descendants, depth first."""
    yield node
    for child in node.children():
        yield from walk(child)


# -----------------------------------------------------------------------------
# Parser
# -----------------------------------------------------------------------------


class ParseError(Exception):
    """Error during parsing."""

    def __init__(self, message: str, token: Token):
        self.token = token
        super().__init__(f"{message} at position {token.position}")


# Binary operator levels, lowest precedence first
BINARY_LEVELS: list[dict[TokenType, str]] = [
    {TokenType.OR: "||"},
    {TokenType.AND: "&&"},
    {
        TokenType.EQ: "==",
        TokenType.NEQ: "!=",
        TokenType.LT: "<",
        TokenType.LTE: "<=",
        TokenType.GT: ">",
        TokenType.GTE: ">=",
        TokenType.IN: "in",
        TokenType.NOT_IN: "not in",
    },
    {TokenType.PLUS: "+", TokenType.MINUS: "-"},
    {TokenType.MULTIPLY: "*", TokenType.DIVIDE: "/", TokenType.MODULO: "%"},
]

_LITERAL_TOKENS = {
    TokenType.NUMBER,
    TokenType.STRING,
    TokenType.BOOLEAN,
    TokenType.NULL,
}


class Parser:
    """Recursive descent parser for the expression DSL.

    Usage:
        parser = Parser('item.Priority * 2')
        ast = parser.parse()
    """

    def __init__(self, source: str):
        self.source = source
        self.tokens = Lexer(source).tokenize()
        self.position = 0

    def parse(self) -> ASTNode:
        """Parse the expression and return the AST root."""
        if self._current().type == TokenType.EOF:
            raise ParseError("Empty expression", self._current())

        ast = self._parse_binary(0)

        if self._current().type != TokenType.EOF:
            raise ParseError(
                f"Unexpected token '{self._current().value}'",
                self._current(),
            )

        return ast

    # -------------------------------------------------------------------------
    # Helper methods
    # -------------------------------------------------------------------------

    def _current(self) -> Token:
        if self.position >= len(self.tokens):
            return Token(TokenType.EOF, None, len(self.source))
        return self.tokens[self.position]

    def _advance(self) -> Token:
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
    # Parsing methods
    # -------------------------------------------------------------------------

    def _parse_binary(self, level: int) -> ASTNode:
        """Parse a left-associative binary expression at the given precedence level."""
        if level == len(BINARY_LEVELS):
            return self._parse_unary()

        operators = BINARY_LEVELS[level]
        left = self._parse_binary(level + 1)

        while self._current().type in operators:
            op = operators[self._advance().type]
            right = self._parse_binary(level + 1)
            left = BinaryOp(op, left, right)

        return left

    def _parse_unary(self) -> ASTNode:
        """Parse unary expression (!, not, -)."""
        if self._match(TokenType.NOT):
            self._advance()
            return UnaryOp("!", self._parse_unary())

        if self._match(TokenType.MINUS):
            self._advance()
            return UnaryOp("-", self._parse_unary())

        return self._parse_postfix()

    def _parse_postfix(self) -> ASTNode:
        """Parse postfix expressions (member access, index, function call)."""
        expr = self._parse_primary()

        while True:
            if self._match(TokenType.DOT):
                self._advance()
                member_token = self._consume(
                    TokenType.IDENTIFIER, "Expected identifier after '.'"
                )
                expr = MemberAccess(expr, str(member_token.value))

            elif self._match(TokenType.LBRACKET):
                self._advance()
                index = self._parse_binary(0)
                self._consume(TokenType.RBRACKET, "Expected ']' after index")
                expr = IndexAccess(expr, index)

            elif self._match(TokenType.LPAREN):
                name = _dotted_name(expr)
                if name is None:
                    raise ParseError("Only named functions can be called", self._current())
                expr = FunctionCall(name, self._parse_arguments())

            else:
                break

        return expr

    def _parse_primary(self) -> ASTNode:
        """Parse primary expression (literals, identifiers, grouped expressions)."""
        token = self._current()

        if token.type in _LITERAL_TOKENS:
            self._advance()
            return Literal(token.value)

        if token.type == TokenType.NOVALUE:
            self._advance()
            return Literal(NO_VALUE)

        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return Identifier(str(token.value))

        if token.type == TokenType.LPAREN:
            self._advance()
            expr = self._parse_binary(0)
            self._consume(TokenType.RPAREN, "Expected ')' after expression")
            return expr

        if token.type == TokenType.LBRACKET:
            self._advance()
            elements = self._parse_list(TokenType.RBRACKET, "Expected ']' after array elements")
            return ArrayLiteral(elements)

        raise ParseError(f"Unexpected token '{token.value}'", token)

    def _parse_arguments(self) -> list[ASTNode]:
        self._consume(TokenType.LPAREN, "Expected '(' after function name")
        return self._parse_list(TokenType.RPAREN, "Expected ')' after arguments")

    def _parse_list(self, closing: TokenType, message: str) -> list[ASTNode]:
        """Parse comma separated expressions up to and including the closing token."""
        elements: list[ASTNode] = []

        if not self._match(closing):
            elements.append(self._parse_binary(0))
            while self._match(TokenType.COMMA):
                self._advance()
                elements.append(self._parse_binary(0))

        self._consume(closing, message)
        return elements


def _dotted_name(node: ASTNode) -> str | None:
    """Return 'a.b.c' for an Identifier/MemberAccess chain, else None."""
    if isinstance(node, Identifier):
        return node.name
    if isinstance(node, MemberAccess):
        prefix = _dotted_name(node.object)
        if prefix is not None:
            return f"{prefix}.{node.member}"
    return None


def parse(source: str) -> ASTNode:
    """Convenience function to parse an expression string.

    Args:
        source: The expression string

    Returns:
        The AST root node
    """
    return Parser(source).parse()
