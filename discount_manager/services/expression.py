"""
Restricted arithmetic formulas for formula-type discount rules.

A formula is parsed once into a Python ``ast`` tree and checked against a
whitelist; evaluation walks that tree with ``Decimal`` arithmetic. Nothing is
ever compiled or executed, so a formula can only combine numeric literals and
the variable ``price`` with ``+ - * /``, unary minus and parentheses.
"""

import ast
import math
from decimal import Decimal, DecimalException, InvalidOperation
from functools import lru_cache

from discount_manager.core.config import settings
from discount_manager.core.exceptions import InvalidFormula

PRICE_VARIABLE = "price"

_BINARY_OPS = {
    ast.Add: lambda a, b: a + b,
    ast.Sub: lambda a, b: a - b,
    ast.Mult: lambda a, b: a * b,
    ast.Div: lambda a, b: a / b,
}


class Formula:
    def __init__(self, text: str, tree: ast.Expression):
        self.text = text
        self._tree = tree

    def evaluate(self, price) -> Decimal:
        price = Decimal(str(price))
        try:
            result = self._eval(self._tree.body, price)
        except ZeroDivisionError as exc:
            # also catches decimal.DivisionByZero
            raise InvalidFormula(self.text, "division by zero") from exc
        except DecimalException as exc:
            raise InvalidFormula(self.text, "arithmetic error") from exc

        if not result.is_finite():
            raise InvalidFormula(self.text, "result is not a finite number")
        return result

    def _eval(self, node: ast.AST, price: Decimal) -> Decimal:
        if isinstance(node, ast.Constant):
            return Decimal(repr(node.value))
        if isinstance(node, ast.Name):
            return price
        if isinstance(node, ast.UnaryOp):
            return -self._eval(node.operand, price)
        if isinstance(node, ast.BinOp):
            left = self._eval(node.left, price)
            right = self._eval(node.right, price)
            if isinstance(node.op, ast.Div) and right == 0:
                raise ZeroDivisionError
            return _BINARY_OPS[type(node.op)](left, right)
        # unreachable for trees that passed _check
        raise InvalidFormula(self.text, f"unsupported element {type(node).__name__}")

    def __repr__(self):
        return f"<Formula {self.text!r}>"


def _check(node: ast.AST, text: str) -> None:
    if isinstance(node, ast.Constant):
        value = node.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidFormula(text, f"unsupported literal {value!r}")
        if isinstance(value, float) and not math.isfinite(value):
            raise InvalidFormula(text, "numeric literal out of range")
        return
    if isinstance(node, ast.Name):
        if node.id != PRICE_VARIABLE:
            raise InvalidFormula(text, f"unknown identifier {node.id!r}")
        return
    if isinstance(node, ast.UnaryOp):
        if not isinstance(node.op, ast.USub):
            raise InvalidFormula(text, "only unary minus is allowed")
        _check(node.operand, text)
        return
    if isinstance(node, ast.BinOp):
        if type(node.op) not in _BINARY_OPS:
            raise InvalidFormula(text, "only + - * / operators are allowed")
        _check(node.left, text)
        _check(node.right, text)
        return
    raise InvalidFormula(text, f"{type(node).__name__} is not allowed")


@lru_cache(maxsize=512)
def parse_formula(text: str) -> Formula:
    if not isinstance(text, str) or not text.strip():
        raise InvalidFormula(str(text), "formula is empty")
    if len(text) > settings.FORMULA_MAX_LENGTH:
        raise InvalidFormula(text, f"formula longer than {settings.FORMULA_MAX_LENGTH} characters")

    try:
        tree = ast.parse(text.strip(), mode="eval")
    except (SyntaxError, ValueError, RecursionError, MemoryError) as exc:
        raise InvalidFormula(text, "could not parse formula") from exc

    try:
        _check(tree.body, text)
    except RecursionError as exc:
        raise InvalidFormula(text, "formula is nested too deeply") from exc
    return Formula(text, tree)


def evaluate_formula(text: str, price) -> Decimal:
    return parse_formula(text).evaluate(price)


def is_number(value) -> bool:
    try:
        return Decimal(str(value)).is_finite()
    except (InvalidOperation, ValueError, TypeError):
        return False
