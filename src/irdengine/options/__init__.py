"""
Options module - Swaption pricing.

Provides:
- Black'76, shifted Black and Bachelier closed-form models
- Volatility surfaces
- European swaption pricing engine
"""

from .base_models import (
    bachelier_price,
    bachelier_greeks,
    black76_price,
    black76_greeks,
    shifted_black76_price,
    shifted_black76_greeks,
    implied_vol_bachelier,
    implied_vol_black,
)
from .volatility import VolType, VolatilitySurface, FlatVolatilitySurface
from .swaption import (
    ExerciseStyle,
    PayerReceiver,
    PricingModel,
    PricingResult,
    Swaption,
    SwaptionPricingEngine,
)

__all__ = [
    "bachelier_price",
    "bachelier_greeks",
    "black76_price",
    "black76_greeks",
    "shifted_black76_price",
    "shifted_black76_greeks",
    "implied_vol_bachelier",
    "implied_vol_black",
    "VolType",
    "VolatilitySurface",
    "FlatVolatilitySurface",
    "ExerciseStyle",
    "PayerReceiver",
    "PricingModel",
    "PricingResult",
    "Swaption",
    "SwaptionPricingEngine",
]
