"""Key-value persistence gateways for plans and highlights."""

from .plan_store import JsonHighlightSource, JsonPlanStore

__all__ = ["JsonHighlightSource", "JsonPlanStore"]
