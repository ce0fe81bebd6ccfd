"""
Fixed bottom tabs and their labels.
"""

from typing import Dict, List, Tuple

ICONS_BASE_URL = "https://homer-assets.s3.eu-west-1.amazonaws.com/icons_app"

# (tab id, icon file) in position order; position 0 is the start tab
DEFAULT_TABS: List[Tuple[str, str]] = [
    ("start", f"{ICONS_BASE_URL}/key_nav.png"),
    ("inventory", f"{ICONS_BASE_URL}/inventory_nav.png"),
    ("expenses", f"{ICONS_BASE_URL}/expenses_nav.png"),
    ("timeline", f"{ICONS_BASE_URL}/timeline_nav.png"),
    ("lists", f"{ICONS_BASE_URL}/tasks_nav.png"),
]

FALLBACK_LANGUAGE = "en"

TAB_LABELS: Dict[str, Dict[str, str]] = {
    "en": {
        "start": "Start",
        "inventory": "Inventory",
        "expenses": "Expenses",
        "timeline": "Timeline",
        "lists": "Lists",
    },
    "de": {
        "start": "Start",
        "inventory": "Inventar",
        "expenses": "Ausgaben",
        "timeline": "Zeitachse",
        "lists": "Listen",
    },
    "fr": {
        "start": "Accueil",
        "inventory": "Inventaire",
        "expenses": "Dépenses",
        "timeline": "Chronologie",
        "lists": "Listes",
    },
    "es": {
        "start": "Inicio",
        "inventory": "Inventario",
        "expenses": "Gastos",
        "timeline": "Cronología",
        "lists": "Listas",
    },
    "it": {
        "start": "Inizio",
        "inventory": "Inventario",
        "expenses": "Spese",
        "timeline": "Cronologia",
        "lists": "Liste",
    },
    "nl": {
        "start": "Start",
        "inventory": "Inventaris",
        "expenses": "Uitgaven",
        "timeline": "Tijdlijn",
        "lists": "Lijsten",
    },
}


def get_tab_label(tab_id: str, language: str = FALLBACK_LANGUAGE) -> str:
    """Look up a tab label: exact language, base language, English, then the id itself."""
    candidates = [language or FALLBACK_LANGUAGE]
    if "-" in candidates[0]:
        candidates.append(candidates[0].split("-", 1)[0])
    candidates.append(FALLBACK_LANGUAGE)

    for candidate in candidates:
        label = TAB_LABELS.get(candidate, {}).get(tab_id)
        if label:
            return label
    return tab_id
