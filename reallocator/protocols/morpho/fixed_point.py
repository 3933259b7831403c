"""WAD fixed-point arithmetic used by Morpho Blue.

All values are Python ints, so intermediate products never overflow. Divisions
round toward zero like Solidity, which is the same as flooring whenever both
operands are non-negative.
"""

from typing import Optional

from reallocator.core.constants import WAD

# ln(2) scaled by WAD
LN_2_INT = 693147180559945309
# ln(1e-18) scaled by WAD, below which wExp underflows to zero
LN_WEI_INT = -41446531673892822312
# Above this input wExp is clamped to avoid overflowing an int256
WEXP_UPPER_BOUND = 93859467695000404319
# wExp(WEXP_UPPER_BOUND)
WEXP_UPPER_VALUE = 57716089161558943949701069502944508345128422502756744429568

# ERC4626 virtual offsets protecting share prices against inflation attacks
VIRTUAL_SHARES = 10**6
VIRTUAL_ASSETS = 1


def _div(x: int, d: int) -> int:
    """Integer division rounding toward zero."""
    q = abs(x) // abs(d)
    return q if (x >= 0) == (d > 0) else -q


def mul_div_down(x: int, y: int, d: int) -> int:
    return _div(x * y, d)


def mul_div_up(x: int, y: int, d: int) -> int:
    return (x * y + (d - 1)) // d


def w_mul_down(x: int, y: int) -> int:
    return mul_div_down(x, y, WAD)


def w_mul_up(x: int, y: int) -> int:
    return mul_div_up(x, y, WAD)


def w_div_down(x: int, y: int) -> int:
    return mul_div_down(x, WAD, y)


def w_div_up(x: int, y: int) -> int:
    return mul_div_up(x, WAD, y)


def w_taylor_compounded(x: int, n: int) -> int:
    """Approximate e^(x*n) - 1 with the first three Taylor terms.

    Matches the gas-optimized compounding of Morpho Blue, so the result is
    slightly below the true exponential for large rates.
    """
    first_term = x * n
    second_term = mul_div_down(first_term, first_term, 2 * WAD)
    third_term = mul_div_down(second_term, first_term, 3 * WAD)
    return first_term + second_term + third_term


def w_exp(x: int) -> int:
    """Fixed-point e^x.

    Decomposes x = q * ln(2) + r with q rounded to the nearest integer, then
    approximates e^r to the second order and scales by 2^q.
    """
    if x < LN_WEI_INT:
        return 0
    if x >= WEXP_UPPER_BOUND:
        return WEXP_UPPER_VALUE

    rounding_adjustment = -(LN_2_INT // 2) if x < 0 else LN_2_INT // 2
    q = _div(x + rounding_adjustment, LN_2_INT)
    r = x - q * LN_2_INT
    exp_r = WAD + r + r * r // WAD // 2

    if q >= 0:
        return exp_r << q
    return exp_r >> -q


def to_shares_down(assets: int, total_assets: int, total_shares: int) -> int:
    return mul_div_down(assets, total_shares + VIRTUAL_SHARES, total_assets + VIRTUAL_ASSETS)


def to_assets_down(shares: int, total_assets: int, total_shares: int) -> int:
    return mul_div_down(shares, total_assets + VIRTUAL_ASSETS, total_shares + VIRTUAL_SHARES)


def min_bounded(*values: Optional[int]) -> Optional[int]:
    """Minimum of the given amounts where None stands for "unbounded".

    Returns None only when every value is unbounded.
    """
    bounded = [v for v in values if v is not None]
    if not bounded:
        return None
    return min(bounded)


def percent_of(amount: int, percent: int) -> int:
    """Integer share of an amount, e.g. percent_of(x, 10) is 10% of x."""
    return amount * percent // 100
