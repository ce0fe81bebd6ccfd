"""
Rule matching: folds a rule's conditions into one boolean.
"""

from typing import Optional

from shared.logging import get_logger
from .conditions import ConditionEvaluator, ContextLike
from .models import LogicalOperator, Rule

FORCE_FALSE = "force_false"
EXCLUDE = "exclude"
INACTIVE_CONDITION_MODES = (FORCE_FALSE, EXCLUDE)


class RuleMatcher:
    """Strict left fold over a rule's conditions.

    ``[A, B(OR), C(AND)]`` is ``(A or B) and C``; there is no AND-before-OR
    precedence, the authored order decides grouping.

    ``inactive_condition_mode`` picks what an inactive condition does:
    ``force_false`` keeps it in the fold as a false term, ``exclude`` drops it
    before folding.
    """

    def __init__(self, evaluator: Optional[ConditionEvaluator] = None,
                 inactive_condition_mode: str = FORCE_FALSE):
        if inactive_condition_mode not in INACTIVE_CONDITION_MODES:
            raise ValueError(f"Unknown inactive condition mode: {inactive_condition_mode}")
        self.evaluator = evaluator or ConditionEvaluator()
        self.inactive_condition_mode = inactive_condition_mode
        self.logger = get_logger("ui_rules.matcher")

    def matches(self, rule: Rule, context: ContextLike) -> bool:
        """Check if a rule's causes match the context."""
        conditions = list(rule.causes or [])
        if self.inactive_condition_mode == EXCLUDE:
            conditions = [c for c in conditions if c.active]

        if not conditions:
            return True

        result = self.evaluator.evaluate(conditions[0], context)
        for condition in conditions[1:]:
            outcome = self.evaluator.evaluate(condition, context)
            if condition.logical_operator == LogicalOperator.OR:
                result = result or outcome
            else:
                result = result and outcome

        self.logger.debug("Rule match result", rule=rule.name, matched=result, causes=len(conditions))
        return result
