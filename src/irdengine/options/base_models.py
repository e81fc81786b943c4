"""
Closed-form option models on a forward rate.

Implements:
- Black'76 (lognormal forward)
- Shifted Black'76 for low or negative rates
- Bachelier (normal forward)

All prices are per unit notional and scaled by a numeraire: the swap
annuity for swaptions, a discount factor for a single caplet. Payer
swaptions are calls on the forward swap rate, receivers are puts.
"""

from typing import Callable, Dict
import numpy as np
from scipy.optimize import brentq
from scipy.stats import norm

from ..errors import NegativeVolatility


# Standard normal CDF and PDF
N = norm.cdf
n = norm.pdf


def _check_vol(sigma: float) -> None:
    if not sigma > 0:
        raise NegativeVolatility(sigma)


def _intrinsic(F: float, K: float, is_call: bool) -> float:
    return max(F - K, 0.0) if is_call else max(K - F, 0.0)


def black76_d1_d2(F: float, K: float, T: float, sigma: float):
    """d1 and d2 of the Black'76 formula."""
    sqrt_t = np.sqrt(T)
    d1 = (np.log(F / K) + 0.5 * sigma**2 * T) / (sigma * sqrt_t)
    return d1, d1 - sigma * sqrt_t


def black76_price(
    F: float,
    K: float,
    T: float,
    sigma: float,
    annuity: float = 1.0,
    is_call: bool = True
) -> float:
    """
    Black'76 option price.

    Assumes the forward follows geometric Brownian motion:
    dF = sigma * F * dW

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        sigma: Black (lognormal) volatility
        annuity: Numeraire
        is_call: True for call (payer), False for put (receiver)

    Returns:
        Option price per unit notional
    """
    if T <= 0:
        return annuity * _intrinsic(F, K, is_call)
    _check_vol(sigma)
    if F <= 0 or K <= 0:
        raise ValueError("Forward and strike must be positive for Black model")

    d1, d2 = black76_d1_d2(F, K, T, sigma)
    if is_call:
        return float(annuity * (F * N(d1) - K * N(d2)))
    return float(annuity * (K * N(-d2) - F * N(-d1)))


def black76_greeks(
    F: float,
    K: float,
    T: float,
    sigma: float,
    annuity: float = 1.0,
    is_call: bool = True
) -> Dict[str, float]:
    """
    Black'76 sensitivities.

    Returns:
        Dict with delta (dV/dF), gamma, vega (dV/dsigma) and theta (dV/dt)
    """
    if T <= 0:
        itm = (F > K) if is_call else (F < K)
        return {
            'delta': (annuity if is_call else -annuity) if itm else 0.0,
            'gamma': 0.0,
            'vega': 0.0,
            'theta': 0.0
        }
    _check_vol(sigma)
    if F <= 0 or K <= 0:
        raise ValueError("Forward and strike must be positive for Black model")

    sqrt_t = np.sqrt(T)
    d1, _ = black76_d1_d2(F, K, T, sigma)
    delta = annuity * N(d1) if is_call else -annuity * N(-d1)

    return {
        'delta': float(delta),
        'gamma': float(annuity * n(d1) / (F * sigma * sqrt_t)),
        'vega': float(annuity * F * sqrt_t * n(d1)),
        'theta': float(-annuity * F * sigma * n(d1) / (2 * sqrt_t))
    }


def shifted_black76_price(
    F: float,
    K: float,
    T: float,
    sigma: float,
    shift: float,
    annuity: float = 1.0,
    is_call: bool = True
) -> float:
    """
    Shifted Black'76 price: d(F + shift) = sigma * (F + shift) * dW.
    """
    if F + shift <= 0 or K + shift <= 0:
        raise ValueError(
            f"Shifted forward ({F + shift}) and strike ({K + shift}) must be positive"
        )
    return black76_price(F + shift, K + shift, T, sigma, annuity, is_call)


def shifted_black76_greeks(
    F: float,
    K: float,
    T: float,
    sigma: float,
    shift: float,
    annuity: float = 1.0,
    is_call: bool = True
) -> Dict[str, float]:
    if F + shift <= 0 or K + shift <= 0:
        raise ValueError(
            f"Shifted forward ({F + shift}) and strike ({K + shift}) must be positive"
        )
    return black76_greeks(F + shift, K + shift, T, sigma, annuity, is_call)


def bachelier_price(
    F: float,
    K: float,
    T: float,
    sigma: float,
    annuity: float = 1.0,
    is_call: bool = True
) -> float:
    """
    Bachelier (normal) option price.

    Assumes the forward follows arithmetic Brownian motion:
    dF = sigma * dW

    Args:
        F: Forward rate
        K: Strike
        T: Time to expiry (years)
        sigma: Normal volatility
        annuity: Numeraire
        is_call: True for call (payer), False for put (receiver)

    Returns:
        Option price per unit notional
    """
    if T <= 0:
        return annuity * _intrinsic(F, K, is_call)
    _check_vol(sigma)

    sqrt_t = np.sqrt(T)
    d = (F - K) / (sigma * sqrt_t)
    if is_call:
        return float(annuity * ((F - K) * N(d) + sigma * sqrt_t * n(d)))
    return float(annuity * ((K - F) * N(-d) + sigma * sqrt_t * n(d)))


def bachelier_greeks(
    F: float,
    K: float,
    T: float,
    sigma: float,
    annuity: float = 1.0,
    is_call: bool = True
) -> Dict[str, float]:
    """
    Bachelier sensitivities.

    Returns:
        Dict with delta, gamma, vega (to normal vol) and theta
    """
    if T <= 0:
        itm = (F > K) if is_call else (F < K)
        return {
            'delta': (annuity if is_call else -annuity) if itm else 0.0,
            'gamma': 0.0,
            'vega': 0.0,
            'theta': 0.0
        }
    _check_vol(sigma)

    sqrt_t = np.sqrt(T)
    d = (F - K) / (sigma * sqrt_t)
    delta = annuity * N(d) if is_call else -annuity * N(-d)

    return {
        'delta': float(delta),
        'gamma': float(annuity * n(d) / (sigma * sqrt_t)),
        'vega': float(annuity * sqrt_t * n(d)),
        'theta': float(-annuity * sigma * n(d) / (2 * sqrt_t))
    }


def _implied_vol(
    pricer: Callable[[float], float],
    price: float,
    intrinsic: float,
    upper: float,
    tol: float
) -> float:
    if price <= intrinsic:
        raise ValueError(f"Price {price} is at or below intrinsic value {intrinsic}")
    lower = 1e-12
    while pricer(upper) < price:
        upper *= 2.0
        if upper > 1e3:
            raise ValueError(f"No volatility reproduces price {price}")
    return float(brentq(lambda s: pricer(s) - price, lower, upper, xtol=tol))


def implied_vol_black(
    price: float,
    F: float,
    K: float,
    T: float,
    annuity: float = 1.0,
    is_call: bool = True,
    tol: float = 1e-12
) -> float:
    """
    Black volatility reproducing a price.

    Args:
        price: Option price per unit notional
        F: Forward rate
        K: Strike
        T: Time to expiry
        annuity: Numeraire
        is_call: True for call, False for put
        tol: Root-finder tolerance on the volatility

    Returns:
        Implied Black volatility
    """
    if T <= 0:
        raise ValueError("Cannot compute implied vol for expired option")
    if F <= 0 or K <= 0:
        raise ValueError("Forward and strike must be positive")
    return _implied_vol(
        lambda s: black76_price(F, K, T, s, annuity, is_call),
        price, annuity * _intrinsic(F, K, is_call), 1.0, tol,
    )


def implied_vol_bachelier(
    price: float,
    F: float,
    K: float,
    T: float,
    annuity: float = 1.0,
    is_call: bool = True,
    tol: float = 1e-14
) -> float:
    """Normal volatility reproducing a price."""
    if T <= 0:
        raise ValueError("Cannot compute implied vol for expired option")
    return _implied_vol(
        lambda s: bachelier_price(F, K, T, s, annuity, is_call),
        price, annuity * _intrinsic(F, K, is_call), 0.05, tol,
    )
