"""Rule context, engine, predicate evaluators and the evaluation queue."""
from .context import HISTORIC, LIVE, RuleContext
from .engine import ERRORED, FIRED, SKIPPED, RuleEngine, RuleResult
from .outcomes import OutcomeDispatcher
from .queue import RuleEvaluationQueue

__all__ = [
    "ERRORED",
    "FIRED",
    "HISTORIC",
    "LIVE",
    "OutcomeDispatcher",
    "RuleContext",
    "RuleEngine",
    "RuleEvaluationQueue",
    "RuleResult",
    "SKIPPED",
]
