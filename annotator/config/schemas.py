"""
JSON Schemas for rows stored by the persistence backend.

Every row read back from the backend is validated against one of these
before it is turned into a model, so a corrupted or foreign record never
reaches the labeling engine.
"""

HEX_COLOR_PATTERN: str = r"^#(?:[0-9A-Fa-f]{3}|[0-9A-Fa-f]{6}|[0-9A-Fa-f]{8})$"

# =============================================================================
# Label type row
# =============================================================================
LABEL_TYPE_ROW_SCHEMA: dict = {
    "type": "object",
    "required": ["id", "project_id", "key", "name", "color", "hotkey", "created_at"],
    "properties": {
        "id": {"type": "integer", "minimum": 1},
        "project_id": {"type": "integer"},
        "key": {"type": "string", "minLength": 1},
        "name": {"type": "string", "minLength": 1},
        "color": {"type": "string", "pattern": HEX_COLOR_PATTERN},
        "hotkey": {"type": "string", "minLength": 1, "maxLength": 1},
        "description": {"type": ["string", "null"]},
        "created_at": {"type": "string"},
    },
}

# =============================================================================
# Label row
# =============================================================================
LABEL_ROW_SCHEMA: dict = {
    "type": "object",
    "required": [
        "id",
        "file_id",
        "label_type_id",
        "start_offset",
        "end_offset",
        "value",
        "created_at",
        "updated_at",
    ],
    "properties": {
        "id": {"type": "integer", "minimum": 1},
        "file_id": {"type": "integer"},
        "label_type_id": {"type": "integer"},
        "start_offset": {"type": "integer", "minimum": 0},
        "end_offset": {"type": "integer", "minimum": 1},
        "value": {"type": "string"},
        "created_by": {"type": "string"},
        "created_at": {"type": "string"},
        "updated_at": {"type": "string"},
    },
}

# =============================================================================
# File row
# =============================================================================
FILE_ROW_SCHEMA: dict = {
    "type": "object",
    "required": ["id", "project_id", "name", "content", "created_at"],
    "properties": {
        "id": {"type": "integer", "minimum": 1},
        "project_id": {"type": "integer"},
        "name": {"type": "string", "minLength": 1},
        "content": {"type": "string"},
        "file_type": {"type": "string"},
        "created_at": {"type": "string"},
    },
}
