"""
Query Evaluator
================
Evaluates a parsed query tree against documents' word sets.

    query = compile_query("water|(salt&dough)")
    hits = query.filter(index)          # parse once, evaluate per document

Semantics:
    Literal / Identifier  -- the lowercased word is in ``document.words``
    !arg                  -- negation
    a & b, a | b          -- both sides are evaluated, then combined

Operators outside the closed set are rejected by the parser; a hand-built
tree that still carries one evaluates to ``False`` instead of raising.
"""

import logging
from typing import AbstractSet, Iterable, List, Tuple, TypeVar

from ocr_search.query.nodes import (
    BinaryExpression,
    BinaryOperator,
    Identifier,
    Literal,
    QueryNode,
    UnaryExpression,
    UnaryOperator,
)
from ocr_search.query.parser import parse_query

logger = logging.getLogger(__name__)

D = TypeVar("D")


def _words(document) -> AbstractSet[str]:
    if isinstance(document, dict):
        # Plain records (e.g. straight from ocr_results.json) may not be lowercase.
        return frozenset(str(w).lower() for w in document.get("words") or ())
    return document.words


def evaluate(document, node: QueryNode) -> bool:
    """
    True if *document* satisfies the query tree rooted at *node*.

    Walks the tree with an explicit stack, so long ``a|b|c|...`` chains
    (left-deep trees) never hit the interpreter's recursion limit.
    """
    words = _words(document)
    results: List[bool] = []
    stack: List[Tuple[QueryNode, bool]] = [(node, False)]

    while stack:
        current, operands_done = stack.pop()
        if isinstance(current, Literal):
            results.append(current.value.lower() in words)
        elif isinstance(current, Identifier):
            results.append(current.name.lower() in words)
        elif isinstance(current, UnaryExpression):
            if not operands_done:
                stack.append((current, True))
                stack.append((current.argument, False))
                continue
            value = results.pop()
            if current.operator == UnaryOperator.NOT:
                results.append(not value)
            else:
                logger.debug("Unsupported unary operator %r evaluates to false", current.operator)
                results.append(False)
        elif isinstance(current, BinaryExpression):
            if not operands_done:
                stack.append((current, True))
                stack.append((current.right, False))
                stack.append((current.left, False))
                continue
            right = results.pop()
            left = results.pop()
            if current.operator == BinaryOperator.AND:
                results.append(left and right)
            elif current.operator == BinaryOperator.OR:
                results.append(left or right)
            else:
                logger.debug("Unsupported binary operator %r evaluates to false", current.operator)
                results.append(False)
        else:
            results.append(False)

    return results[0]


class CompiledQuery:
    """A query parsed once and reusable against any number of documents."""

    def __init__(self, text: str):
        self.text = text
        self.root = parse_query(text)

    def matches(self, document) -> bool:
        return evaluate(document, self.root)

    def filter(self, documents: Iterable[D]) -> List[D]:
        """Matching documents, in their original order."""
        return [doc for doc in documents if evaluate(doc, self.root)]

    def __repr__(self) -> str:
        return f"CompiledQuery({self.text!r} -> {self.root})"


def compile_query(query: str) -> CompiledQuery:
    return CompiledQuery(query)


def search(documents: Iterable[D], query: str) -> List[D]:
    """
    Return the documents matching *query*, preserving their order.

    Raises ``QuerySyntaxError`` when the query does not parse; an empty
    list therefore always means "no matches".
    """
    logger.info("Parsing query: %s", query)
    compiled = compile_query(query)
    results = compiled.filter(documents)
    logger.info("Query %r matched %d document(s)", query, len(results))
    return results
