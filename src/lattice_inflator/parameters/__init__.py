"""
Parameter layer - orbits, modifier rules, formulas and the ParameterManager.
"""

from .formula import evaluate_formula, formula_symbols
from .manager import ParameterManager
from .modifiers import Modifiers, OffsetRule, ThicknessRule, parse_modifiers
from .orbits import Orbits, parse_orbits
