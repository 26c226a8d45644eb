"""External collaborators - rate limiting, alerts, code delivery."""

from adaptive_auth.integrations.rate_limiter import InMemoryRateLimiter, RateLimiter
from adaptive_auth.integrations.alerts import (
    AlertDispatcher,
    LoggingAlertDispatcher,
    SnsAlertDispatcher,
)
from adaptive_auth.integrations.delivery import (
    AwsCodeDelivery,
    CodeDeliveryChannel,
    LoggingCodeDelivery,
)

__all__ = [
    "InMemoryRateLimiter",
    "RateLimiter",
    "AlertDispatcher",
    "LoggingAlertDispatcher",
    "SnsAlertDispatcher",
    "AwsCodeDelivery",
    "CodeDeliveryChannel",
    "LoggingCodeDelivery",
]
