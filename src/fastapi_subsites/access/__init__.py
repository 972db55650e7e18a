"""Group-based access decisions."""

from fastapi_subsites.access.evaluator import AccessEvaluator

__all__ = ["AccessEvaluator"]
