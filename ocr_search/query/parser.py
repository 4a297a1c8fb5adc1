"""
Query Parser
=============
Compiles a boolean search expression into a ``QueryNode`` tree.

Grammar (lowest to highest precedence)::

    query   := or_expr END
    or_expr := and_expr ( "|" and_expr )*
    and_expr:= unary ( "&" unary )*
    unary   := "!" unary | primary
    primary := WORD | QUOTED | "(" or_expr ")"

Binary operators are left-associative.  ``WORD`` is a run of word
characters and hyphens (``e-mail`` is one word); an all-digit word becomes
a ``Literal``, anything else an ``Identifier``.  ``QUOTED`` is a single- or
double-quoted token and becomes a ``Literal``.

The whole query is lowercased before tokenising, matching the lowercase
word sets built at indexing time.

Only ``&``, ``|`` and ``!`` are operators.  Anything else that looks like
one (``&&``, ``||``, ``+``, ``-``, ``=``) is rejected here with
``QuerySyntaxError`` so it can never silently evaluate to false later.
Nesting of ``!`` and ``(`` is capped at ``MAX_DEPTH`` levels, also reported
as ``QuerySyntaxError``.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from ocr_search.errors import QuerySyntaxError
from ocr_search.query.nodes import (
    BinaryExpression,
    BinaryOperator,
    Identifier,
    Literal,
    QueryNode,
    UnaryExpression,
    UnaryOperator,
)

# Nesting limit for "!" and "(" combined; keeps the parser and the evaluator
# well below the interpreter's recursion limit.
MAX_DEPTH = 100

_WORD_RE = re.compile(r"[\w-]+")
_HAS_WORD_CHAR_RE = re.compile(r"\w")

# Token kinds
WORD = "WORD"
QUOTED = "QUOTED"
LPAREN = "("
RPAREN = ")"
AND = BinaryOperator.AND.value
OR = BinaryOperator.OR.value
NOT = UnaryOperator.NOT.value
END = "END"


@dataclass(frozen=True)
class Token:
    kind: str
    value: str
    position: int


def tokenize(query: str) -> List[Token]:
    """Split a (lowercased) query into tokens, ending with an ``END`` token."""
    tokens: List[Token] = []
    i, n = 0, len(query)
    while i < n:
        ch = query[i]
        if ch.isspace():
            i += 1
            continue

        if ch in (AND, OR):
            if i + 1 < n and query[i + 1] == ch:
                raise QuerySyntaxError(
                    f"Unsupported operator '{ch * 2}', use '{ch}'", query, i
                )
            tokens.append(Token(ch, ch, i))
            i += 1
            continue

        if ch in (NOT, LPAREN, RPAREN):
            if ch == NOT and i + 1 < n and query[i + 1] == "=":
                raise QuerySyntaxError("Unsupported operator '!='", query, i)
            tokens.append(Token(ch, ch, i))
            i += 1
            continue

        if ch in ("'", '"'):
            end = query.find(ch, i + 1)
            if end < 0:
                raise QuerySyntaxError("Unterminated quoted word", query, i)
            value = query[i + 1:end]
            if not value.strip():
                raise QuerySyntaxError("Empty quoted word", query, i)
            tokens.append(Token(QUOTED, value, i))
            i = end + 1
            continue

        match = _WORD_RE.match(query, i)
        if match and _HAS_WORD_CHAR_RE.search(match.group()):
            tokens.append(Token(WORD, match.group(), i))
            i = match.end()
            continue

        raise QuerySyntaxError(f"Unsupported operator or character {ch!r}", query, i)

    tokens.append(Token(END, "", n))
    return tokens


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, query: str, tokens: List[Token]):
        self.query = query
        self.tokens = tokens
        self.pos = 0
        self.depth = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.pos]

    def advance(self) -> Token:
        token = self.tokens[self.pos]
        if token.kind != END:
            self.pos += 1
        return token

    def error(self, message: str, token: Optional[Token] = None) -> QuerySyntaxError:
        token = token or self.current
        return QuerySyntaxError(message, self.query, token.position)

    def parse(self) -> QueryNode:
        node = self.parse_or()
        token = self.current
        if token.kind == RPAREN:
            raise self.error("Unbalanced ')'")
        if token.kind != END:
            raise self.error(f"Expected '&' or '|' before {token.value!r}")
        return node

    def parse_or(self) -> QueryNode:
        node = self.parse_and()
        while self.current.kind == OR:
            self.advance()
            node = BinaryExpression(BinaryOperator.OR, node, self.parse_and())
        return node

    def parse_and(self) -> QueryNode:
        node = self.parse_unary()
        while self.current.kind == AND:
            self.advance()
            node = BinaryExpression(BinaryOperator.AND, node, self.parse_unary())
        return node

    def enter(self) -> None:
        self.depth += 1
        if self.depth > MAX_DEPTH:
            raise self.error(f"Query nested too deeply (limit {MAX_DEPTH})")

    def parse_unary(self) -> QueryNode:
        if self.current.kind == NOT:
            self.enter()
            self.advance()
            node = UnaryExpression(UnaryOperator.NOT, self.parse_unary())
            self.depth -= 1
            return node
        return self.parse_primary()

    def parse_primary(self) -> QueryNode:
        token = self.current
        if token.kind == WORD:
            self.advance()
            if token.value.isdigit():
                return Literal(token.value)
            return Identifier(token.value)
        if token.kind == QUOTED:
            self.advance()
            return Literal(token.value)
        if token.kind == LPAREN:
            self.enter()
            self.advance()
            node = self.parse_or()
            if self.current.kind != RPAREN:
                raise self.error("Expected ')'", token if self.current.kind == END else None)
            self.advance()
            self.depth -= 1
            return node
        if token.kind == END:
            raise self.error("Unexpected end of query")
        raise self.error(f"Unexpected {token.value!r}")


def parse_query(query: str) -> QueryNode:
    """
    Parse *query* into a tree.

    Raises:
        QuerySyntaxError: empty query, unbalanced parentheses, dangling or
                          unsupported operators, unterminated quotes.
    """
    if query is None or not query.strip():
        raise QuerySyntaxError("Empty query", query or "")
    lowered = query.lower()
    return _Parser(lowered, tokenize(lowered)).parse()
