"""
Rule engine orchestrator for the UI Rules service.
"""

import time
from typing import Any, Iterable, List, Optional, Protocol, Sequence

from shared.logging import get_logger, set_screen_context
from shared.metrics import MetricsCollector
from ..catalog.tab_labels import get_tab_label
from .applier import EffectApplier, TabMetadataResolver
from .conditions import ConditionEvaluator
from .matcher import FORCE_FALSE, RuleMatcher
from .models import EffectBase, Rule, coerce_context, coerce_rules, parse_effects
from .state import AppliedEffectsState, LabelLookup, create_initial_state


class DefaultEffectsProvider(Protocol):
    """Source of the unconditional default effects."""

    async def get_effects(self, version_id: Optional[str] = None) -> List[EffectBase]:
        ...


class RuleEngine:
    """Turns selected rules plus a context into one screen's applied effects state.

    Order of application:

    1. a fresh default state;
    2. default effects, unconditionally, in list order;
    3. active selected rules in reverse list order, each only when its
       causes match, each rule's effects in their own order;
    4. on the expenses screen, the rule named after the active sub-tab is
       applied again with the sub-tab as the screen.

    Nothing in this pipeline raises on malformed rule or effect data.
    """

    def __init__(
        self,
        default_effects_provider: Optional[DefaultEffectsProvider] = None,
        label_lookup: LabelLookup = get_tab_label,
        metrics: Optional[MetricsCollector] = None,
        inactive_condition_mode: str = FORCE_FALSE,
    ):
        self.logger = get_logger("ui_rules.engine")
        self.default_effects_provider = default_effects_provider
        self.label_lookup = label_lookup
        self.metrics = metrics
        self.evaluator = ConditionEvaluator()
        self.matcher = RuleMatcher(self.evaluator, inactive_condition_mode=inactive_condition_mode)
        self.applier = EffectApplier(metrics=metrics)

    def create_initial_state(self, language: str = "en") -> AppliedEffectsState:
        return create_initial_state(language, self.label_lookup)

    async def apply_rules(
        self,
        selected_rules: Iterable[Any],
        context: Any,
        current_screen: str = "start",
        include_defaults: bool = True,
        defaults_version_id: Optional[str] = None,
        tab_resolver: Optional[TabMetadataResolver] = None,
        language: str = "en",
    ) -> AppliedEffectsState:
        """Fetch default effects (fail-soft) and render the screen."""
        default_effects: List[EffectBase] = []
        if include_defaults:
            default_effects = await self.fetch_default_effects(defaults_version_id)

        return self.render(
            selected_rules,
            context,
            current_screen=current_screen,
            default_effects=default_effects,
            tab_resolver=tab_resolver,
            language=language,
        )

    async def fetch_default_effects(self, version_id: Optional[str] = None) -> List[EffectBase]:
        """Default effects for a version, or an empty list when they cannot be had."""
        if self.default_effects_provider is None:
            return []
        try:
            effects = await self.default_effects_provider.get_effects(version_id)
        except Exception as e:
            self.logger.error("Default effects unavailable, rendering without them",
                              version_id=version_id, error=str(e))
            if self.metrics:
                self.metrics.increment_counter("default_effects_fetch_total", status="error")
            return []

        if self.metrics:
            self.metrics.increment_counter("default_effects_fetch_total", status="ok")
        return parse_effects(list(effects or []))

    def render(
        self,
        selected_rules: Iterable[Any],
        context: Any,
        current_screen: str = "start",
        default_effects: Sequence[Any] = (),
        tab_resolver: Optional[TabMetadataResolver] = None,
        language: str = "en",
    ) -> AppliedEffectsState:
        """Synchronous render pass with an already-fetched default effects list."""
        start_time = time.time()
        set_screen_context(current_screen)
        try:
            render_context = coerce_context(context)
            state = self.create_initial_state(language)

            defaults = parse_effects(list(default_effects))
            if defaults:
                self.logger.debug("Applying default effects", count=len(defaults))
            for effect in defaults:
                state = self.applier.apply(state, effect, current_screen, tab_resolver, language)

            active_rules = [rule for rule in coerce_rules(selected_rules) if rule.active]
            self.logger.debug("Processing selected rules", count=len(active_rules))

            # Later rules apply first so earlier ones get the final word
            for rule in reversed(active_rules):
                if self._rule_matches(rule, render_context):
                    self.logger.debug("Rule matched", rule=rule.name, effects=len(rule.effects))
                    state = self._apply_rule_effects(state, rule, current_screen, tab_resolver, language)

            subtab = render_context.active_subtab
            if current_screen == "expenses" and subtab:
                subtab_rule = next(
                    (rule for rule in active_rules
                     if rule.name == subtab and self.matcher.matches(rule, render_context)),
                    None,
                )
                if subtab_rule is not None:
                    self.logger.debug("Applying subtab rule", subtab=subtab)
                    state = self._apply_rule_effects(state, subtab_rule, subtab, tab_resolver, language)

            self.logger.info(
                "Render completed",
                screen=current_screen,
                shortcuts=len(state.shortcuts),
                start_plates=len(state.start_plates),
                rules=len(active_rules),
                defaults=len(defaults),
            )
            return state
        finally:
            if self.metrics:
                self.metrics.observe_histogram("render_duration_seconds", time.time() - start_time,
                                               screen=current_screen)
            set_screen_context(None)

    def matching_rules(self, selected_rules: Iterable[Any], context: Any) -> List[str]:
        """Names of the active rules whose causes match the context, in authoring order."""
        render_context = coerce_context(context)
        return [
            rule.name for rule in coerce_rules(selected_rules)
            if rule.active and self.matcher.matches(rule, render_context)
        ]

    def _rule_matches(self, rule: Rule, context) -> bool:
        matched = self.matcher.matches(rule, context)
        if self.metrics:
            self.metrics.increment_counter("rules_evaluated_total", matched=str(matched).lower())
        return matched

    def _apply_rule_effects(self, state: AppliedEffectsState, rule: Rule, screen: str,
                            tab_resolver: Optional[TabMetadataResolver], language: str) -> AppliedEffectsState:
        for effect in rule.effects:
            state = self.applier.apply(state, effect, screen, tab_resolver, language)
        return state
