"""
Black-Scholes pricing and the simplified greeks used by the synthetic
market generator.

Everything here is closed-form. The normal CDF is the Abramowitz-Stegun
polynomial approximation (26.2.17) rather than scipy's erf-based one, so
synthetic prices are reproducible bit-for-bit across platforms. Its
absolute error is below 7.5e-8, well inside what the surface needs.

Argument order follows the market generator: (S, K, r, sigma, T).
Callers filter out T <= 0 and sigma <= 0 before pricing, so none of the
functions below guard against them.

References:
    Black, F. & Scholes, M. (1973). The Pricing of Options and Corporate Liabilities.
    Abramowitz, M. & Stegun, I. (1964). Handbook of Mathematical Functions, 26.2.17.
"""

import math


_INV_SQRT_2PI = 0.398942280401433

# A&S 26.2.17 coefficients
_P = 0.2316419
_B1 = 0.319381530
_B2 = -0.356563782
_B3 = 1.781477937
_B4 = -1.821255978
_B5 = 1.330274429


# ════════════════════════════════════════════════════════════════════════
#  NORMAL DISTRIBUTION
# ════════════════════════════════════════════════════════════════════════

def std_normal_pdf(x: float) -> float:
    """Standard normal density φ(x) = exp(-x²/2) / √(2π)."""
    return math.exp(-0.5 * x * x) / math.sqrt(2 * math.pi)


def norm_cdf(x: float) -> float:
    """
    Standard normal CDF via the A&S polynomial approximation.

    p(x) = φ(x) * t * (b1 + t*(b2 + t*(b3 + t*(b4 + t*b5)))),  t = 1/(1 + 0.2316419|x|)

    Returns 1 - p for x >= 0 and p for x < 0, which makes
    Φ(x) + Φ(-x) = 1 hold exactly apart from rounding.
    """
    t = 1.0 / (1.0 + _P * abs(x))
    d = _INV_SQRT_2PI * math.exp(-0.5 * x * x)
    p = d * t * (_B1 + t * (_B2 + t * (_B3 + t * (_B4 + t * _B5))))
    return 1.0 - p if x >= 0 else p


# ════════════════════════════════════════════════════════════════════════
#  PRICING
# ════════════════════════════════════════════════════════════════════════

def d1(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """
    Compute d1 in the Black-Scholes formula.

    Parameters
    ----------
    S : spot price
    K : strike price
    r : risk-free rate (annualized, continuous compounding)
    sigma : volatility (annualized)
    T : time to expiry in years

    Returns
    -------
    float
    """
    return (math.log(S / K) + (r + 0.5 * sigma ** 2) * T) / (sigma * math.sqrt(T))


def d2(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """Compute d2 = d1 - sigma * sqrt(T)."""
    return d1(S, K, r, sigma, T) - sigma * math.sqrt(T)


def call_price(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """European call: S·Φ(d1) − K·e^{−rT}·Φ(d2)."""
    _d1 = d1(S, K, r, sigma, T)
    _d2 = _d1 - sigma * math.sqrt(T)
    return S * norm_cdf(_d1) - K * math.exp(-r * T) * norm_cdf(_d2)


def put_price(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """European put: K·e^{−rT}·Φ(−d2) − S·Φ(−d1)."""
    _d1 = d1(S, K, r, sigma, T)
    _d2 = _d1 - sigma * math.sqrt(T)
    return K * math.exp(-r * T) * norm_cdf(-_d2) - S * norm_cdf(-_d1)


def bs_price(S: float, K: float, r: float, sigma: float, T: float,
             option_type: str = "call") -> float:
    """Dispatch to call_price or put_price based on option_type."""
    if option_type.lower() in ("c", "call"):
        return call_price(S, K, r, sigma, T)
    elif option_type.lower() in ("p", "put"):
        return put_price(S, K, r, sigma, T)
    else:
        raise ValueError(f"Unknown option_type: {option_type}. Use 'call' or 'put'.")


# ════════════════════════════════════════════════════════════════════════
#  GREEKS
# ════════════════════════════════════════════════════════════════════════

def gamma(S: float, K: float, r: float, sigma: float, T: float) -> float:
    """
    Option gamma: d²V/dS² = φ(d1) / (S σ √T).

    Same for calls and puts. Peaks near ATM and grows as T -> 0.
    """
    return std_normal_pdf(d1(S, K, r, sigma, T)) / (S * sigma * math.sqrt(T))


def approx_delta(moneyness: float, option_type: str = "call") -> float:
    """
    Smooth delta proxy driven by moneyness, not the Black-Scholes N(d1).

    Calls: 0.5 + 0.5 * (1 - e^{-10m})
    Puts: -0.5 - 0.5 * (1 - e^{10m})

    Only the options-chain table consumes it.
    """
    if option_type.lower() in ("c", "call"):
        return 0.5 + 0.5 * (1 - math.exp(-10 * moneyness))
    return -0.5 - 0.5 * (1 - math.exp(-10 * -moneyness))


def term_factor(days_to_expiry: float) -> float:
    """Square-root-of-time scaling relative to a 30-day month."""
    return math.sqrt(days_to_expiry / 30)


def approx_theta(S: float, gamma_value: float, days_to_expiry: float) -> float:
    """Theta proxy: -S * 1% * gamma / termFactor (decays faster near expiry)."""
    return -S * 0.01 * gamma_value / term_factor(days_to_expiry)


def approx_vega(S: float, gamma_value: float, days_to_expiry: float) -> float:
    """Vega proxy: S * 1% * gamma * termFactor (grows with term)."""
    return S * 0.01 * gamma_value * term_factor(days_to_expiry)
