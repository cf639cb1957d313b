"""Lexer/tokenizer for the colderive expression DSL.

Converts an expression string into a stream of tokens for the parser.

Token types:
- Literals: NUMBER, STRING, BOOLEAN, NULL, NOVALUE
- Identifiers: IDENTIFIER (item, attribute names, function names)
- Operators: comparison, logical, arithmetic, membership
- Punctuation: LPAREN, RPAREN, LBRACKET, RBRACKET, COMMA, DOT
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    """Types of tokens in the expression language."""

    # Literals
    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()
    NOVALUE = auto()     # novalue

    IDENTIFIER = auto()

    # Comparison operators
    EQ = auto()          # ==
    NEQ = auto()         # !=
    LT = auto()          # <
    LTE = auto()         # <=
    GT = auto()          # >
    GTE = auto()         # >=

    # Logical operators
    AND = auto()         # && or and
    OR = auto()          # || or or
    NOT = auto()         # ! or not

    # Arithmetic operators
    PLUS = auto()
    MINUS = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()

    # Membership operators
    IN = auto()          # in
    NOT_IN = auto()      # not in

    # Punctuation
    LPAREN = auto()
    RPAREN = auto()
    LBRACKET = auto()
    RBRACKET = auto()
    COMMA = auto()
    DOT = auto()

    EOF = auto()


@dataclass(frozen=True)
class Token:
    """A single token from the lexer.

    Attributes:
        type: The token type
        value: The token's value (number, string content, identifier name, etc.)
        position: Character position in the source string
        line: Line number (1-indexed)
        column: Column number (1-indexed)
    """

    type: TokenType
    value: str | int | float | bool | None
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


class LexerError(Exception):
    """Error during lexical analysis."""

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1):
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


# Order matters: longer operators before their prefixes, "not in" before identifiers
TOKEN_PATTERNS = [
    (r"\s+", None),
    (r"==", TokenType.EQ),
    (r"!=", TokenType.NEQ),
    (r"<=", TokenType.LTE),
    (r">=", TokenType.GTE),
    (r"&&", TokenType.AND),
    (r"\|\|", TokenType.OR),
    (r"<", TokenType.LT),
    (r">", TokenType.GT),
    (r"!", TokenType.NOT),
    (r"\+", TokenType.PLUS),
    (r"-", TokenType.MINUS),
    (r"\*", TokenType.MULTIPLY),
    (r"/", TokenType.DIVIDE),
    (r"%", TokenType.MODULO),
    (r"\(", TokenType.LPAREN),
    (r"\)", TokenType.RPAREN),
    (r"\[", TokenType.LBRACKET),
    (r"\]", TokenType.RBRACKET),
    (r",", TokenType.COMMA),
    (r"\.", TokenType.DOT),
    (r"\d+\.\d+|\d+", TokenType.NUMBER),
    (r'"(?:[^"\\]|\\.)*"', TokenType.STRING),
    (r"'(?:[^'\\]|\\.)*'", TokenType.STRING),
    (r"(?i:not)\s+(?i:in)\b", TokenType.NOT_IN),
    (r"[a-zA-Z_][a-zA-Z0-9_]*", TokenType.IDENTIFIER),
]

# Case-insensitive keywords
KEYWORDS = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "novalue": (TokenType.NOVALUE, None),
    "and": (TokenType.AND, "and"),
    "or": (TokenType.OR, "or"),
    "not": (TokenType.NOT, "not"),
    "in": (TokenType.IN, "in"),
}

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r"}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)

_COMPILED_PATTERNS = [(re.compile(p), t) for p, t in TOKEN_PATTERNS]


class Lexer:
    """Tokenizer for the expression DSL.

    Usage:
        lexer = Lexer('item.Status == "Completed" && item.Points > 0')
        for token in lexer:
            print(token)
    """

    def __init__(self, source: str):
        self.source = source
        self.position = 0
        self.line = 1
        self.column = 1

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type == TokenType.EOF:
                break

    def next_token(self) -> Token:
        """Get the next token from the source, skipping whitespace."""
        while self.position < len(self.source):
            for pattern, token_type in _COMPILED_PATTERNS:
                match = pattern.match(self.source, self.position)
                if match:
                    break
            else:
                raise LexerError(
                    f"Unexpected character '{self.source[self.position]}'",
                    self.position,
                    self.line,
                    self.column,
                )

            text = match.group()
            start = (self.position, self.line, self.column)
            self._advance(len(text))

            if token_type is None:
                continue
            return Token(*self._token_value(token_type, text), *start)

        return Token(TokenType.EOF, None, self.position, self.line, self.column)

    def _token_value(
        self, token_type: TokenType, text: str
    ) -> tuple[TokenType, str | int | float | bool | None]:
        """Return the (possibly re-typed) token type and its value."""
        if token_type == TokenType.NUMBER:
            return token_type, float(text) if "." in text else int(text)
        if token_type == TokenType.STRING:
            return token_type, self._unescape_string(text[1:-1])
        if token_type == TokenType.NOT_IN:
            return token_type, "not in"
        if token_type == TokenType.IDENTIFIER and text.lower() in KEYWORDS:
            return KEYWORDS[text.lower()]
        return token_type, text

    def _advance(self, count: int) -> None:
        """Advance position by count characters, updating line/column."""
        consumed = self.source[self.position:self.position + count]
        newlines = consumed.count("\n")
        if newlines:
            self.line += newlines
            self.column = len(consumed) - consumed.rfind("\n")
        else:
            self.column += len(consumed)
        self.position += len(consumed)

    @staticmethod
    def _unescape_string(s: str) -> str:
        return _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), s)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source and return list of tokens."""
        return list(self)
