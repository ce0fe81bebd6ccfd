"""
Effect application onto an applied effects state snapshot.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .models import (
    DisplayEffect,
    EffectBase,
    FilterDirective,
    FilterEffect,
    ReplaceTabsEffect,
    ShowContentEffect,
    StyleEffect,
    ToggleEffect,
    parse_effect,
)
from .state import (
    INVENTORY_DISPLAY_TYPES,
    AppliedEffectsState,
    HeaderState,
    QuickActionsConfig,
    TabDescriptor,
)

FALLBACK_TAB_LANGUAGE = "en-GB"
GLOBAL_SCREEN = "global"


class TabMetadataResolver(Protocol):
    """Resolves replacement tabs from the flex features catalog."""

    def get_tab_action_config(self, tab_id: str) -> Optional[Mapping[str, Any]]:
        ...

    def resolve_tab_icon(self, web_screen_key: str) -> str:
        ...


def apply_filter_to_items(current_items: Sequence[str], directives: Sequence[FilterDirective]) -> List[str]:
    """Incrementally edit an ordered id list.

    Directives run in order: ``show`` false removes, ``show`` true appends
    when absent, and a numeric ``order`` moves a present, not-hidden item to
    ``min(order, len)``.
    """
    result = list(current_items)

    for directive in directives:
        item_id = directive.id

        if directive.show is False:
            result = [existing for existing in result if existing != item_id]
        elif directive.show is True and item_id not in result:
            result.append(item_id)

        if directive.order is not None and directive.show is not False and item_id in result:
            result = [existing for existing in result if existing != item_id]
            result.insert(min(directive.order, len(result)), item_id)

    return result


def _is_shortcuts(target: Optional[str], section: Optional[str]) -> bool:
    return bool(target and (target.startswith("shortcuts") or target == "shortcut")) or section == "shortcuts"


def _is_start_plates(target: Optional[str], section: Optional[str]) -> bool:
    return (bool(target and (target.startswith("startPlates") or target == "startPlate"))
            or section in ("startPlates", "startplates"))


def _is_quick_actions(target: Optional[str], section: Optional[str]) -> bool:
    return target in ("quickActions", "quickAction") or section == "quickActions"


class EffectApplier:
    """Applies one declarative effect to a state snapshot.

    Every call works on a deep copy, so the snapshot passed in is never
    modified and a failure half-way through an effect leaves the caller with
    the previous state.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self.logger = get_logger("ui_rules.applier")
        self.metrics = metrics
        self._handlers = {
            "showContent": self._apply_show_content,
            "filter": self._apply_filter,
            "display": self._apply_display,
            "style": self._apply_style,
            "toggle": self._apply_toggle,
            "replaceTabs": self._apply_replace_tabs,
        }

    def apply(
        self,
        state: AppliedEffectsState,
        effect: Union[EffectBase, Mapping[str, Any]],
        current_screen: str = "start",
        tab_resolver: Optional[TabMetadataResolver] = None,
        language: str = "en",
    ) -> AppliedEffectsState:
        """Apply a single effect and return the resulting state."""
        parsed = parse_effect(effect)
        if parsed is None:
            self._skipped("invalid")
            return state

        if not parsed.active:
            self._skipped("inactive")
            return state

        if not self.matches_screen(parsed.effective_screen, current_screen):
            self._skipped("screen")
            return state

        action = getattr(parsed, "action", None)
        handler = self._handlers.get(action)
        if handler is None:
            self.logger.warning("Unknown action type", action=action)
            self._skipped("unknown_action")
            return state

        new_state = state.model_copy(deep=True)
        try:
            applied = handler(new_state, parsed, current_screen, tab_resolver, language)
        except Exception as e:
            self.logger.error("Error applying effect", action=action, target=parsed.target, error=str(e))
            self._skipped("error")
            return state

        if not applied:
            self._skipped("unresolved_target")
            return state

        if self.metrics:
            self.metrics.increment_counter("effects_applied_total", action=action)
        return new_state

    @staticmethod
    def matches_screen(effect_screen: str, current_screen: str) -> bool:
        """Effects apply to their own screen, to every screen when global, and
        expenses sub-screen effects also apply while rendering the expenses bucket."""
        return (
            effect_screen == current_screen
            or effect_screen == GLOBAL_SCREEN
            or (current_screen == "expenses" and effect_screen.startswith("expenses"))
        )

    def _skipped(self, reason: str):
        if self.metrics:
            self.metrics.increment_counter("effects_skipped_total", reason=reason)

    def _bucket(self, state: AppliedEffectsState, current_screen: str) -> Optional[QuickActionsConfig]:
        bucket = state.quick_actions.bucket_for(current_screen)
        if bucket is None:
            self.logger.warning("No quick actions bucket for screen", screen=current_screen)
        return bucket

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _apply_show_content(self, state: AppliedEffectsState, effect: ShowContentEffect,
                            current_screen: str, tab_resolver, language) -> bool:
        target, section = effect.target, effect.section
        items = list(effect.data.value)

        if _is_shortcuts(target, section):
            state.shortcuts = items
            self.logger.debug("Replaced shortcuts", items=items)
        elif _is_start_plates(target, section):
            state.start_plates = items
            self.logger.debug("Replaced startPlates", items=items)
        elif _is_quick_actions(target, section):
            bucket = self._bucket(state, current_screen)
            if bucket is None:
                return False
            bucket.items = items
            bucket.visible = True
            self.logger.debug("Replaced quickActions", screen=current_screen, items=items)
        else:
            self.logger.warning("showContent target not recognised", target=target, section=section)
            return False
        return True

    def _apply_filter(self, state: AppliedEffectsState, effect: FilterEffect,
                      current_screen: str, tab_resolver, language) -> bool:
        target, section = effect.target, effect.section
        directives = effect.data.value

        if _is_shortcuts(target, section):
            state.shortcuts = apply_filter_to_items(state.shortcuts, directives)
        elif _is_start_plates(target, section):
            state.start_plates = apply_filter_to_items(state.start_plates, directives)
        elif _is_quick_actions(target, section):
            bucket = self._bucket(state, current_screen)
            if bucket is None:
                return False
            bucket.items = apply_filter_to_items(bucket.items, directives)
        else:
            self.logger.warning("filter target not recognised", target=target, section=section)
            return False
        return True

    def _set_header_flag(self, state: AppliedEffectsState, authored_name: Optional[str], enabled: bool) -> bool:
        attribute = HeaderState.attribute_for(authored_name) if authored_name else None
        if attribute is None:
            self.logger.warning("Unknown header field", field=authored_name)
            return False
        setattr(state.header, attribute, enabled)
        return True

    def _apply_display(self, state: AppliedEffectsState, effect: DisplayEffect,
                       current_screen: str, tab_resolver, language) -> bool:
        target, section = effect.target, effect.section
        enabled = effect.data.enabled

        if (target and target.startswith("header.")) or section == "header":
            header_field = target if section == "header" else target.split(".")[1]
            return self._set_header_flag(state, header_field, enabled)

        if target in ("fab", "fab.button"):
            state.fab.visible = enabled
            return True

        # Specific quick-action flags are checked before the generic bucket target
        if target == "allActions":
            bucket = self._bucket(state, current_screen)
            if bucket is None:
                return False
            bucket.show_all_actions = enabled
            return True

        if target == "customizeQuickActions":
            bucket = self._bucket(state, current_screen)
            if bucket is None:
                return False
            bucket.show_customize = enabled
            return True

        if _is_quick_actions(target, section):
            bucket = self._bucket(state, current_screen)
            if bucket is None:
                return False
            bucket.visible = enabled
            return True

        self.logger.warning("display target not recognised", target=target, section=section)
        return False

    def _apply_style(self, state: AppliedEffectsState, effect: StyleEffect,
                     current_screen: str, tab_resolver, language) -> bool:
        target, section, data = effect.target, effect.section, effect.data

        if _is_quick_actions(target, section):
            layout = data.layout if data.layout is not None else data.value
            if not isinstance(layout, str):
                self.logger.warning("quickActions layout is not a string", layout=repr(layout))
                return False
            bucket = self._bucket(state, current_screen)
            if bucket is None:
                return False
            bucket.layout = "list" if layout == "list" else "grid"
            return True

        if target == "partnerLogo" and section == "homeImage":
            if data.type == "url" and data.value:
                state.home_image.partner_logo = str(data.value)
                return True
            self.logger.warning("partnerLogo style needs a url value", type=data.type)
            return False

        if target == "homeImage":
            changed = False
            if data.partner_logo:
                state.home_image.partner_logo = str(data.partner_logo)
                changed = True
            if data.url:
                state.home_image.url = str(data.url)
                changed = True
            return changed

        if target == "inventory" and data.display_type:
            if data.display_type not in INVENTORY_DISPLAY_TYPES:
                self.logger.warning("Unknown inventory display type", display_type=data.display_type)
                return False
            state.inventory.display_type = data.display_type
            return True

        self.logger.warning("style target not recognised", target=target, section=section)
        return False

    def _apply_toggle(self, state: AppliedEffectsState, effect: ToggleEffect,
                      current_screen: str, tab_resolver, language) -> bool:
        target = effect.target
        enabled = effect.data.enabled

        if target == "fab":
            state.fab.visible = enabled
            return True
        if target and target.startswith("header."):
            return self._set_header_flag(state, target.split(".")[1], enabled)

        self.logger.warning("toggle target not recognised", target=target)
        return False

    def _apply_replace_tabs(self, state: AppliedEffectsState, effect: ReplaceTabsEffect,
                            current_screen: str, tab_resolver, language) -> bool:
        if effect.section != "tabs":
            self.logger.warning("replaceTabs expects the tabs section", section=effect.section)
            return False

        tabs = state.bottom_tabs
        for directive in effect.data.value:
            position = directive.position
            tab_id = directive.id

            if isinstance(position, bool) or not isinstance(position, int):
                self.logger.warning("Invalid tab position, skipping", position=repr(position), tab_id=tab_id)
                continue

            if position == 0:
                self.logger.warning("Cannot replace position 0 (start tab), skipping", tab_id=tab_id)
                continue

            if not 0 <= position < len(tabs):
                self.logger.warning("Invalid tab position, skipping", position=position, tab_count=len(tabs))
                continue

            if tab_id is None:
                tabs[position].visible = False
                self.logger.debug("Hiding tab", position=position, tab_id=tabs[position].id)
                continue

            resolved = self.resolve_tab_metadata(tab_id, position, tab_resolver, language)
            if resolved is None:
                self.logger.warning("Could not resolve tab metadata, skipping", tab_id=tab_id, position=position)
                continue

            tabs[position] = resolved
            self.logger.debug("Replaced tab", position=position, tab_id=tab_id)

        return True

    def resolve_tab_metadata(self, tab_id: str, position: int,
                             tab_resolver: Optional[TabMetadataResolver],
                             language: str) -> Optional[TabDescriptor]:
        """Build a tab descriptor from the flex features catalog, or None."""
        if tab_resolver is None:
            self.logger.warning("Tab metadata resolver not available", tab_id=tab_id)
            return None

        try:
            config = tab_resolver.get_tab_action_config(tab_id)
            if not config:
                self.logger.warning("Tab action not found", tab_id=tab_id)
                return None

            locale: Dict[str, Any] = config.get("locale") or {}
            label = (
                (locale.get(language) or {}).get("tabItem")
                or (locale.get(FALLBACK_TAB_LANGUAGE) or {}).get("tabItem")
                or tab_id
            )

            web_screen_key = (config.get("config") or {}).get("webScreenKey")
            if not web_screen_key:
                self.logger.warning("No webScreenKey for tab action", tab_id=tab_id)
                return None

            icon = tab_resolver.resolve_tab_icon(web_screen_key)
            return TabDescriptor(id=tab_id, label=str(label), icon=icon, visible=True, position=position)

        except Exception as e:
            self.logger.error("Error resolving tab metadata", tab_id=tab_id, error=str(e))
            return None
