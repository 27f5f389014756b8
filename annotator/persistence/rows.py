"""
Row conversion — backend rows (plain dicts) to and from engine models.

Rows are validated against the JSON Schemas before conversion; a row that
does not conform is reported as a PersistenceError rather than leaking a
half-built model into the engine.
"""
import logging

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate

from annotator.config.schemas import FILE_ROW_SCHEMA, LABEL_ROW_SCHEMA, LABEL_TYPE_ROW_SCHEMA
from annotator.labeling.errors import PersistenceError
from annotator.models.document import Document
from annotator.models.label import Confirmed, Label
from annotator.models.label_type import LabelType

logger = logging.getLogger(__name__)


def _check(row: dict, schema: dict, kind: str) -> None:
    try:
        validate(instance=row, schema=schema)
    except SchemaValidationError as e:
        logger.error("Malformed %s row from backend: %s", kind, e.message)
        raise PersistenceError(f"decode_{kind}", f"malformed row: {e.message}") from e


# ======================================================================
# Label types
# ======================================================================

def label_type_from_row(row: dict) -> LabelType:
    _check(row, LABEL_TYPE_ROW_SCHEMA, "label_type")
    return LabelType(
        id=row["id"],
        project_id=row["project_id"],
        key=row["key"],
        name=row["name"],
        color=row["color"],
        hotkey=row["hotkey"],
        description=row.get("description"),
        created_at=row["created_at"],
    )


# ======================================================================
# Labels
# ======================================================================

def label_from_row(row: dict) -> Label:
    _check(row, LABEL_ROW_SCHEMA, "label")
    if row["start_offset"] >= row["end_offset"]:
        raise PersistenceError("decode_label", f"empty span in label {row['id']}")
    return Label(
        identity=Confirmed(row["id"]),
        file_id=row["file_id"],
        label_type_id=row["label_type_id"],
        start_offset=row["start_offset"],
        end_offset=row["end_offset"],
        value=row["value"],
        created_by=row.get("created_by", ""),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def label_to_row(label: Label, label_id: int) -> dict:
    return {
        "id": label_id,
        "file_id": label.file_id,
        "label_type_id": label.label_type_id,
        "start_offset": label.start_offset,
        "end_offset": label.end_offset,
        "value": label.value,
        "created_by": label.created_by,
        "created_at": label.created_at,
        "updated_at": label.updated_at,
    }


# ======================================================================
# Files
# ======================================================================

def document_from_row(row: dict) -> Document:
    _check(row, FILE_ROW_SCHEMA, "file")
    return Document(
        id=row["id"],
        project_id=row["project_id"],
        name=row["name"],
        content=row["content"],
        file_type=row.get("file_type", "text/plain"),
        created_at=row["created_at"],
    )
