"""Message triggering: content extraction and the respond/ignore decision."""

from squabble.triggers.evaluator import TriggerDecision, TriggerEvaluator, TriggerReason
from squabble.triggers.extract import extract

__all__ = ["extract", "TriggerEvaluator", "TriggerDecision", "TriggerReason"]
