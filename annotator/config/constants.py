"""
Constants shared by the labeling engine, the backend bridge and the API.
"""
from typing import List, Tuple

# =============================================================================
# Default label types (seeded on first access to a project)
# =============================================================================
DEFAULT_LABEL_TYPES: List[dict] = [
    {"key": "PER", "name": "Person", "color": "#EF4444", "hotkey": "1"},
    {"key": "ORG", "name": "Organization", "color": "#3B82F6", "hotkey": "2"},
    {"key": "LOC", "name": "Location", "color": "#10B981", "hotkey": "3"},
    {"key": "GEO", "name": "Geopolitical", "color": "#F59E0B", "hotkey": "4"},
    {"key": "DAT", "name": "Date", "color": "#8B5CF6", "hotkey": "5"},
]

DEFAULT_TYPE_COLOR: str = "#3B82F6"

# =============================================================================
# Rendering
# =============================================================================
# Hex alpha appended to a type color to form the highlight tint (~25%).
HIGHLIGHT_ALPHA_SUFFIX: str = "40"

# Used when a label points at a type that no longer exists.
UNLABELED_NAME: str = "Unlabeled"
UNLABELED_COLOR: str = "#9CA3AF"

# =============================================================================
# Uploads
# =============================================================================
SUPPORTED_EXTENSIONS: Tuple[str, ...] = (".txt", ".csv", ".json")
