"""
Applied effects state: one screen's resolved UI configuration.
"""

from typing import Callable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.logging import get_logger

from ..catalog.tab_labels import DEFAULT_TABS, get_tab_label

logger = get_logger("ui_rules.state")

LabelLookup = Callable[[str, str], str]

INVENTORY_DISPLAY_TYPES = ("list", "microcards", "grid", "large", "table")
QUICK_ACTION_BUCKETS = ("start", "inventory", "expenses", "timeline", "lists")


class _StateModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HeaderState(_StateModel):
    avatars: bool = False
    home_info: bool = False
    user_settings: bool = False
    expand_collapse: bool = False
    ellipsis: bool = False
    search_ask: bool = False
    search: Optional[bool] = None
    ask: Optional[bool] = None
    nav_dots: bool = False
    nav_dot_count: int = 3
    active_nav_dot: int = 0

    @classmethod
    def attribute_for(cls, authored_name: str) -> Optional[str]:
        """Map an authored header field name (camelCase or snake_case) to the attribute."""
        for name, info in cls.model_fields.items():
            if authored_name in (name, info.alias):
                return name
        return None


class HomeImageState(_StateModel):
    url: Optional[str] = None
    partner_logo: Optional[str] = None


class QuickActionsConfig(_StateModel):
    visible: bool = False
    items: List[str] = Field(default_factory=list)
    layout: Literal["grid", "list"] = "grid"
    show_customize: bool = False
    show_all_actions: bool = False


class QuickActionsState(_StateModel):
    start: QuickActionsConfig = Field(default_factory=QuickActionsConfig)
    inventory: QuickActionsConfig = Field(default_factory=QuickActionsConfig)
    expenses: QuickActionsConfig = Field(default_factory=QuickActionsConfig)
    timeline: QuickActionsConfig = Field(default_factory=QuickActionsConfig)
    lists: QuickActionsConfig = Field(default_factory=QuickActionsConfig)

    def bucket_for(self, screen: str) -> Optional[QuickActionsConfig]:
        key = bucket_key(screen)
        if key not in QUICK_ACTION_BUCKETS:
            return None
        return getattr(self, key)


class FabState(_StateModel):
    visible: bool = True


class TabDescriptor(_StateModel):
    id: str
    label: str
    icon: str
    visible: bool = True
    position: int


class InventoryState(_StateModel):
    display_type: Literal["list", "microcards", "grid", "large", "table"] = "list"


class AppliedEffectsState(_StateModel):
    header: HeaderState = Field(default_factory=HeaderState)
    home_image: HomeImageState = Field(default_factory=HomeImageState)
    shortcuts: List[str] = Field(default_factory=list)
    quick_actions: QuickActionsState = Field(default_factory=QuickActionsState)
    start_plates: List[str] = Field(default_factory=list)
    fab: FabState = Field(default_factory=FabState)
    bottom_tabs: List[TabDescriptor] = Field(default_factory=list)
    inventory: InventoryState = Field(default_factory=InventoryState)

    def to_payload(self) -> dict:
        """camelCase JSON-ready form consumed by the renderer."""
        return self.model_dump(mode="json", by_alias=True)


def bucket_key(screen: str) -> str:
    """Every expenses sub-screen shares the single expenses bucket."""
    if isinstance(screen, str) and screen.startswith("expenses"):
        return "expenses"
    return screen


def create_initial_state(language: str = "en", label_lookup: LabelLookup = get_tab_label) -> AppliedEffectsState:
    """Fresh all-default state with the five fixed tabs."""
    tabs = []
    for position, (tab_id, icon) in enumerate(DEFAULT_TABS):
        try:
            label = label_lookup(tab_id, language) or tab_id
        except Exception as e:
            logger.warning("Tab label lookup failed", tab_id=tab_id, language=language, error=str(e))
            label = tab_id
        tabs.append(TabDescriptor(id=tab_id, label=label, icon=icon, visible=True, position=position))
    return AppliedEffectsState(bottom_tabs=tabs)
