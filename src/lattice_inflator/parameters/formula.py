"""
Formula values for parameter rules.

A rule scalar is either a number or a string expression over named
variables ("0.5 * t + 0.1"). Strings are parsed with sympy once and cached;
evaluation substitutes the caller's variables.

Only arithmetic and the functions in _FORMULA_NAMESPACE are known; every
other name (E, I, beta, ...) is a free variable.
"""

import math
from functools import lru_cache
from numbers import Real
from tokenize import TokenError
from typing import Dict, Optional, Tuple

import sympy as sp
from sympy.parsing.sympy_parser import parse_expr, standard_transformations

from ..spec.errors import ParseError, ValidationError

_FORMULA_NAMESPACE = {
    # parser plumbing
    "Symbol": sp.Symbol,
    "Integer": sp.Integer,
    "Float": sp.Float,
    "Rational": sp.Rational,
    "Function": sp.Function,
    # math
    "pi": sp.pi,
    "sqrt": sp.sqrt,
    "sin": sp.sin,
    "cos": sp.cos,
    "tan": sp.tan,
    "exp": sp.exp,
    "log": sp.log,
    "abs": sp.Abs,
    "min": sp.Min,
    "max": sp.Max,
}


def is_formula(value) -> bool:
    return isinstance(value, str)


def _check_number(value):
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ParseError(f"expected a number or a formula string, got {value!r}")


@lru_cache(maxsize=1024)
def _parse(expr: str) -> Tuple[sp.Expr, Tuple[str, ...]]:
    text = expr.strip()
    if not text:
        raise ParseError("empty formula")
    try:
        parsed = parse_expr(text, local_dict={}, global_dict=dict(_FORMULA_NAMESPACE),
                            transformations=standard_transformations)
    except (sp.SympifyError, SyntaxError, TypeError, ValueError, NameError, TokenError) as err:
        raise ParseError(f"cannot parse formula {expr!r}: {err}") from err
    if not isinstance(parsed, sp.Expr):
        raise ParseError(f"formula {expr!r} is not a scalar expression")
    if parsed.atoms(sp.core.function.AppliedUndef):
        raise ParseError(f"formula {expr!r} calls an unknown function")
    names = tuple(sorted(s.name for s in parsed.free_symbols))
    return parsed, names


def formula_symbols(value) -> Tuple[str, ...]:
    """Names of the free variables in a formula (empty for plain numbers)."""
    if not is_formula(value):
        _check_number(value)
        return ()
    return _parse(value)[1]


def evaluate_formula(value, variables: Optional[Dict[str, float]] = None) -> float:
    """
    Evaluate a rule scalar.

    Args:
        value: number or formula string
        variables: name → value bindings for the formula's free symbols

    Returns:
        float

    Raises:
        ParseError: malformed formula or non-numeric literal
        ValidationError: unbound variable or non-finite/complex result
    """
    if not is_formula(value):
        _check_number(value)
        return float(value)

    parsed, names = _parse(value)
    variables = variables or {}
    missing = [name for name in names if name not in variables]
    if missing:
        raise ValidationError(f"formula {value!r} uses unbound variable(s): {missing}")

    subs = {sp.Symbol(name): variables[name] for name in names}
    result = sp.N(parsed.subs(subs))
    if not result.is_number or result.is_real is not True:
        raise ValidationError(f"formula {value!r} does not evaluate to a real number: {result}")
    result = float(result)
    if not math.isfinite(result):
        raise ValidationError(f"formula {value!r} evaluates to a non-finite value")
    return result
