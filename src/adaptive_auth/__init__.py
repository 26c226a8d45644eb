"""adaptive-auth - Risk-adaptive authentication core."""

__version__ = "1.0.0"
__author__ = "adaptive-auth team"

# Core exports
from adaptive_auth.core.types import ResponseAction, RiskFactor, Severity

__all__ = [
    "ResponseAction",
    "RiskFactor",
    "Severity",
]
