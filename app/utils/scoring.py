"""
Odds multiplier for Oscars Pool scoring

This module holds the pure scoring math. Aggregation over pools lives in
app/services/scoring_service.py.
"""

import math

MULTIPLIER_FORMULAS = ("linear", "inverse", "sqrt", "log")
DEFAULT_FORMULA = "linear"


def calculate_odds_multiplier(odds_percentage, formula=DEFAULT_FORMULA):
    """
    Multiplier applied to a correct pick's base points.

    Lower win probability means a riskier pick and a bigger bonus.

    Returns:
        1.0 when odds are missing or outside (0, 100]
        linear:  2 - d
        inverse: max(1, 100 / odds)
        sqrt:    1 + sqrt(1 - d)
        log:     1 + ln(100 / odds)
        where d = odds / 100. Unknown formulas fall back to linear.
    """
    if not odds_percentage or odds_percentage <= 0 or odds_percentage > 100:
        return 1.0

    odds_decimal = odds_percentage / 100

    if formula == "inverse":
        return max(1.0, 100 / odds_percentage)
    if formula == "sqrt":
        return 1 + math.sqrt(1 - odds_decimal)
    if formula == "log":
        return 1 + math.log(100 / odds_percentage)
    return 2 - odds_decimal


def multiplier_for_pick(odds_percentage, enabled, formula):
    """Multiplier for a pool's settings; 1.0 when disabled or no odds are known"""
    if enabled and odds_percentage is not None and odds_percentage > 0:
        return calculate_odds_multiplier(odds_percentage, formula or DEFAULT_FORMULA)
    return 1.0
