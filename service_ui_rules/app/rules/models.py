"""
Rule data models for the UI Rules service.

Authored rules arrive as loosely shaped JSON. Everything here normalizes that
input at the boundary so the evaluator and applier only see one shape per
concept:

- causes written as ``field`` or ``dataSource`` + ``path`` become a single
  :class:`Condition`;
- effects become one variant of the :data:`Effect` union, keyed by ``action``.
"""

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from shared.logging import get_logger

logger = get_logger("ui_rules.models")


class ConditionOperator(str, Enum):
    """Condition operators."""
    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NIN = "nin"
    CONTAINS = "contains"


class LogicalOperator(str, Enum):
    """How a condition joins the chain evaluated before it."""
    AND = "AND"
    OR = "OR"


class EffectAction(str, Enum):
    """Effect action types."""
    SHOW_CONTENT = "showContent"
    FILTER = "filter"
    DISPLAY = "display"
    STYLE = "style"
    TOGGLE = "toggle"
    REPLACE_TABS = "replaceTabs"


class Condition(BaseModel):
    """A single normalized cause.

    ``path`` is None when the authored cause carried neither ``field`` nor a
    ``dataSource``/``path`` pair; such a condition always evaluates false.
    ``operator`` is kept as a plain string so an unknown operator fails the
    comparison instead of the whole rule.
    """

    model_config = ConfigDict(frozen=True)

    path: Optional[str] = None
    operator: Optional[str] = None
    value: Any = None
    logical_operator: LogicalOperator = LogicalOperator.AND
    active: bool = True

    @model_validator(mode="before")
    @classmethod
    def _normalize_authored_cause(cls, raw: Any) -> Any:
        if isinstance(raw, Condition):
            return raw
        if not isinstance(raw, Mapping):
            return {"path": None, "operator": None}
        if "logical_operator" in raw and "logicalOperator" not in raw:
            # Already normalized (e.g. model_dump output)
            return dict(raw)

        field_path = raw.get("field")
        data_source = raw.get("dataSource")
        sub_path = raw.get("path")
        if field_path:
            path = str(field_path)
        elif data_source and sub_path:
            path = f"{data_source}.{sub_path}"
        else:
            path = None

        data = raw.get("data")
        value = data.get("value") if isinstance(data, Mapping) else None
        if value is None:
            value = raw.get("value")

        operator = raw.get("operator")
        logical = raw.get("logicalOperator")

        return {
            "path": path,
            "operator": operator if isinstance(operator, str) and operator else None,
            "value": value,
            "logical_operator": LogicalOperator.OR if logical == "OR" else LogicalOperator.AND,
            "active": raw.get("active") is not False,
        }

    @classmethod
    def from_raw(cls, raw: Any) -> "Condition":
        """Build a condition from either authoring form."""
        return cls.model_validate(raw)


# --------------------------------------------------------------------------
# Effect payloads
# --------------------------------------------------------------------------


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


class ShowContentData(BaseModel):
    """Replacement list for shortcuts, start plates or a quick-actions bucket."""

    model_config = ConfigDict(extra="allow")

    value: List[str] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def _extract_ids(cls, value: Any) -> List[str]:
        ids = []
        for item in _as_list(value):
            item_id = item if isinstance(item, str) else (item.get("id") if isinstance(item, Mapping) else None)
            if item_id:
                ids.append(str(item_id))
        return ids


class FilterDirective(BaseModel):
    """One incremental list edit."""

    model_config = ConfigDict(extra="ignore")

    id: str
    show: Optional[bool] = None
    order: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return str(value) if isinstance(value, (int, float)) and not isinstance(value, bool) else value

    @field_validator("show", mode="before")
    @classmethod
    def _strict_show(cls, value: Any) -> Optional[bool]:
        return value if isinstance(value, bool) else None

    @field_validator("order", mode="before")
    @classmethod
    def _numeric_order(cls, value: Any) -> Optional[int]:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return int(value)


class FilterData(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: List[FilterDirective] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def _keep_directives_with_ids(cls, value: Any) -> List[Any]:
        return [item for item in _as_list(value) if isinstance(item, Mapping) and item.get("id")]


class DisplayData(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: Any = None

    @property
    def enabled(self) -> bool:
        # Only a literal true switches a flag on
        return self.value is True


class ToggleData(DisplayData):
    pass


class StyleData(BaseModel):
    """Presentation properties. Which keys matter depends on the target."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    value: Any = None
    type: Any = None
    layout: Any = None
    partner_logo: Any = Field(default=None, alias="partnerLogo")
    url: Any = None
    display_type: Any = Field(default=None, alias="displayType")


class TabDirective(BaseModel):
    model_config = ConfigDict(extra="ignore")

    position: Any = None
    id: Optional[str] = None

    @field_validator("position", mode="before")
    @classmethod
    def _integral_position(cls, value: Any) -> Any:
        # JSON numbers such as 2.0 address the same tab as 2
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return value

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        return value if value is None or isinstance(value, str) else str(value)


class ReplaceTabsData(BaseModel):
    model_config = ConfigDict(extra="allow")

    value: List[TabDirective] = Field(default_factory=list)

    @field_validator("value", mode="before")
    @classmethod
    def _keep_mappings(cls, value: Any) -> List[Any]:
        return [item for item in _as_list(value) if isinstance(item, Mapping)]


# --------------------------------------------------------------------------
# Effects
# --------------------------------------------------------------------------


class EffectBase(BaseModel):
    """Fields shared by every effect variant."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    target: Optional[str] = None
    section: Optional[str] = None
    screen: Optional[str] = None
    active: bool = True

    @model_validator(mode="before")
    @classmethod
    def _normalize_common_fields(cls, raw: Any) -> Any:
        if not isinstance(raw, Mapping):
            return raw
        raw = dict(raw)
        # 'element' is the legacy name for 'target'
        if not raw.get("target") and raw.get("element"):
            raw["target"] = raw["element"]
        raw.pop("element", None)
        if raw.get("data") is None:
            raw.pop("data", None)
        raw["active"] = raw.get("active") is not False
        for key in ("target", "section", "screen"):
            if raw.get(key) is not None and not isinstance(raw[key], str):
                raw[key] = str(raw[key])
        return raw

    @property
    def effective_screen(self) -> str:
        return self.screen or "start"


class ShowContentEffect(EffectBase):
    action: Literal["showContent"]
    data: ShowContentData = Field(default_factory=ShowContentData)


class FilterEffect(EffectBase):
    action: Literal["filter"]
    data: FilterData = Field(default_factory=FilterData)


class DisplayEffect(EffectBase):
    action: Literal["display"]
    data: DisplayData = Field(default_factory=DisplayData)


class StyleEffect(EffectBase):
    action: Literal["style"]
    data: StyleData = Field(default_factory=StyleData)


class ToggleEffect(EffectBase):
    action: Literal["toggle"]
    data: ToggleData = Field(default_factory=ToggleData)


class ReplaceTabsEffect(EffectBase):
    action: Literal["replaceTabs"]
    data: ReplaceTabsData = Field(default_factory=ReplaceTabsData)


Effect = Annotated[
    Union[
        ShowContentEffect,
        FilterEffect,
        DisplayEffect,
        StyleEffect,
        ToggleEffect,
        ReplaceTabsEffect,
    ],
    Field(discriminator="action"),
]

_effect_adapter: TypeAdapter = TypeAdapter(Effect)

KNOWN_ACTIONS = frozenset(action.value for action in EffectAction)


def parse_effect(raw: Any) -> Optional[EffectBase]:
    """Validate one authored effect. Returns None (and logs) when unusable."""
    if isinstance(raw, EffectBase):
        return raw
    if not isinstance(raw, Mapping):
        logger.warning("Dropping effect that is not an object", effect=repr(raw))
        return None
    action = raw.get("action")
    if action not in KNOWN_ACTIONS:
        logger.warning("Unknown action type", action=action)
        return None
    try:
        return _effect_adapter.validate_python(dict(raw))
    except ValidationError as e:
        logger.warning("Dropping malformed effect", action=action, error=str(e))
        return None


def parse_effects(raw_effects: Any) -> List[EffectBase]:
    """Validate a list of authored effects, dropping the unusable ones."""
    if not isinstance(raw_effects, (list, tuple)):
        return []
    effects = []
    for raw in raw_effects:
        effect = parse_effect(raw)
        if effect is not None:
            effects.append(effect)
    return effects


# --------------------------------------------------------------------------
# Rules and context
# --------------------------------------------------------------------------


class Rule(BaseModel):
    """Named bundle of causes and effects."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    name: str = ""
    active: bool = False
    causes: List[Condition] = Field(default_factory=list)
    effects: List[Any] = Field(default_factory=list)

    @field_validator("active", mode="before")
    @classmethod
    def _strict_active(cls, value: Any) -> bool:
        return value is True

    @field_validator("causes", mode="before")
    @classmethod
    def _normalize_causes(cls, value: Any) -> List[Condition]:
        return [Condition.from_raw(item) for item in _as_list(value)]

    @field_validator("effects", mode="before")
    @classmethod
    def _parse_effects(cls, value: Any) -> List[EffectBase]:
        return parse_effects(value)

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Optional[str]:
        return None if value is None else str(value)

    @field_validator("name", mode="before")
    @classmethod
    def _stringify_name(cls, value: Any) -> str:
        return "" if value is None else str(value)


class RenderContext(BaseModel):
    """Immutable snapshot of runtime facts, organized into named sections.

    A section that is absent or null stays ``None`` so that any path through
    it resolves as missing.
    """

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    user: Any = None
    home: Any = None
    user_activity: Any = Field(default=None, alias="userActivity")
    home_activity: Any = Field(default=None, alias="homeActivity")
    expenses_screen: Any = Field(default=None, alias="expensesScreen")

    @field_validator("user", "home", "user_activity", "home_activity", "expenses_screen", mode="before")
    @classmethod
    def _copy_mappings(cls, value: Any) -> Any:
        return dict(value) if isinstance(value, Mapping) else value

    def sections(self) -> Dict[str, Any]:
        """Context keyed by the section names used in dotted paths."""
        sections = dict(self.model_extra or {})
        for name, info in type(self).model_fields.items():
            sections[info.alias or name] = getattr(self, name)
        return sections

    def lookup(self, path: str, default: Any = None) -> Any:
        """Walk nested mappings along a dotted path. No list indexing.

        Returns ``default`` when an intermediate value is missing or null; a
        null leaf is returned as None.
        """
        current: Any = self.sections()
        for part in path.split("."):
            if not isinstance(current, Mapping):
                return default
            current = current.get(part)
        return current

    @property
    def active_subtab(self) -> Optional[str]:
        subtab = self.lookup("expensesScreen.activeSubtab")
        return subtab if isinstance(subtab, str) and subtab else None


def coerce_rules(rules: Any) -> List[Rule]:
    """Accept model instances or authored dicts."""
    coerced = []
    for rule in _as_list(rules):
        if isinstance(rule, Rule):
            coerced.append(rule)
        elif isinstance(rule, Mapping):
            try:
                coerced.append(Rule.model_validate(rule))
            except ValidationError as e:
                logger.warning("Dropping malformed rule", rule=rule.get("name"), error=str(e))
        else:
            logger.warning("Dropping rule that is not an object", rule=repr(rule))
    return coerced


def coerce_context(context: Any) -> RenderContext:
    if isinstance(context, RenderContext):
        return context
    if isinstance(context, Mapping):
        return RenderContext.model_validate(dict(context))
    return RenderContext()


# --------------------------------------------------------------------------
# HTTP payloads
# --------------------------------------------------------------------------


class RenderRequest(BaseModel):
    """Request model for a render pass."""

    model_config = ConfigDict(populate_by_name=True)

    rules: List[Dict[str, Any]] = Field(default_factory=list, description="Selected rules in authoring order")
    context: Dict[str, Any] = Field(default_factory=dict, description="Runtime context sections")
    screen: str = Field("start", description="Screen being rendered")
    include_defaults: bool = Field(True, alias="includeDefaults")
    defaults_version_id: Optional[str] = Field(None, alias="defaultsVersionId")
    language: Optional[str] = Field(None, description="Language used for tab labels")


class MatchRequest(BaseModel):
    """Request model for listing matching rules."""

    rules: List[Dict[str, Any]] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)


class MatchResponse(BaseModel):
    matched: List[str] = Field(default_factory=list)
