"""
Query subpackage -- boolean word search over document word sets.

    parse_query("water|(salt&dough)")   -> QueryNode tree
    evaluate(document, tree)            -> bool
    search(documents, query)            -> matching documents, in order
"""

from ocr_search.query.nodes import (
    BinaryExpression,
    BinaryOperator,
    Identifier,
    Literal,
    QueryNode,
    UnaryExpression,
    UnaryOperator,
)
from ocr_search.query.parser import parse_query, tokenize
from ocr_search.query.evaluator import CompiledQuery, compile_query, evaluate, search
