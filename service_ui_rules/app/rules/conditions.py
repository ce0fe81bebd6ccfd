"""
Condition evaluation against a render context.
"""

from typing import Any, Mapping, Union

from shared.logging import get_logger
from .models import Condition, ConditionOperator, RenderContext, coerce_context

ContextLike = Union[RenderContext, Mapping[str, Any]]

_MISSING = object()


def _strict_equals(left: Any, right: Any) -> bool:
    """Equality that does not treat booleans as numbers."""
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


def _includes(container: Any, item: Any) -> bool:
    return any(_strict_equals(member, item) for member in container)


class ConditionEvaluator:
    """Evaluates one condition against a context. Never raises."""

    def __init__(self):
        self.logger = get_logger("ui_rules.conditions")

    def evaluate(self, condition: Union[Condition, Mapping[str, Any]], context: ContextLike) -> bool:
        """Evaluate a single condition."""
        try:
            if not isinstance(condition, Condition):
                condition = Condition.from_raw(condition)

            if not condition.operator:
                self.logger.warning("Invalid cause - missing operator", path=condition.path)
                return False

            # An inactive cause is a failing term, not a skipped one
            if not condition.active:
                return False

            if not condition.path:
                self.logger.warning("Invalid cause - missing field or path", operator=condition.operator)
                return False

            found, context_value = self._resolve_path(condition.path, context)
            if not found:
                return False

            return self._compare(condition.operator, context_value, condition.value)

        except Exception as e:
            self.logger.error("Error evaluating condition", error=str(e))
            return False

    def _resolve_path(self, path: str, context: ContextLike):
        """Returns (False, None) when an intermediate value is missing."""
        value = coerce_context(context).lookup(path, default=_MISSING)
        if value is _MISSING:
            return False, None
        return True, value

    def _compare(self, operator: str, context_value: Any, value: Any) -> bool:
        """Apply a comparison operator."""
        if operator == ConditionOperator.EQ.value:
            return _strict_equals(context_value, value)

        if operator == ConditionOperator.NE.value:
            # ne against null means "is set"
            if value is None:
                return context_value is not None
            return not _strict_equals(context_value, value)

        if operator in (ConditionOperator.GT.value, ConditionOperator.GTE.value,
                        ConditionOperator.LT.value, ConditionOperator.LTE.value):
            return self._compare_ordered(operator, context_value, value)

        if operator == ConditionOperator.IN.value:
            return isinstance(value, (list, tuple)) and _includes(value, context_value)

        if operator == ConditionOperator.NIN.value:
            return isinstance(value, (list, tuple)) and not _includes(value, context_value)

        if operator == ConditionOperator.CONTAINS.value:
            if isinstance(context_value, str):
                return value is not None and str(value) in context_value
            if isinstance(context_value, (list, tuple)):
                return _includes(context_value, value)
            return False

        self.logger.warning("Unknown condition operator", operator=operator)
        return False

    def _compare_ordered(self, operator: str, context_value: Any, value: Any) -> bool:
        if context_value is None or value is None:
            return False
        try:
            if operator == ConditionOperator.GT.value:
                return context_value > value
            if operator == ConditionOperator.GTE.value:
                return context_value >= value
            if operator == ConditionOperator.LT.value:
                return context_value < value
            return context_value <= value
        except TypeError:
            self.logger.debug(
                "Values are not comparable",
                operator=operator,
                context_type=type(context_value).__name__,
                value_type=type(value).__name__
            )
            return False
