"""
Query tree node types.

A parsed query is a tree of four immutable node kinds::

    Literal("2024")                          quoted or numeric word test
    Identifier("salt")                       bare word test
    UnaryExpression(NOT, arg)                !arg
    BinaryExpression(AND | OR, left, right)  left & right, left | right

``Literal`` and ``Identifier`` match identically (word membership); the
distinction only records how the token was written.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union


class UnaryOperator(str, Enum):
    NOT = "!"


class BinaryOperator(str, Enum):
    AND = "&"
    OR = "|"


@dataclass(frozen=True)
class Literal:
    value: str

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class Identifier:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class UnaryExpression:
    operator: UnaryOperator
    argument: "QueryNode"

    def __str__(self) -> str:
        return f"{_symbol(self.operator)}{self.argument}"


@dataclass(frozen=True)
class BinaryExpression:
    operator: BinaryOperator
    left: "QueryNode"
    right: "QueryNode"

    def __str__(self) -> str:
        return f"({self.left} {_symbol(self.operator)} {self.right})"


QueryNode = Union[Literal, Identifier, UnaryExpression, BinaryExpression]


def _symbol(operator) -> str:
    return getattr(operator, "value", str(operator))
