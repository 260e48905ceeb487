import dataclasses
import datetime
import enum
import json
import logging
import os
from decimal import Decimal
from typing import Any, Dict

from ..models.content import EmitResult, ParseResult

logger = logging.getLogger(__name__)

PARSE_RESULT_FILE_NAME = "parser.out.json"
EMIT_RESULT_FILE_NAME = "emitter.out.json"


def to_json_value(obj: Any) -> Any:
    """Convert dataclasses and other non-JSON values into JSON-compatible data."""

    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        value: Dict[str, Any] = {}
        widget = getattr(type(obj), "widget", None)
        if widget:
            value["widget"] = widget
        kind = getattr(type(obj), "kind", None)
        if isinstance(kind, str):
            value["kind"] = kind
        for f in dataclasses.fields(obj):
            value[f.name] = to_json_value(getattr(obj, f.name))
        return value
    if isinstance(obj, enum.Enum):
        return obj.value
    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {str(k): to_json_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_json_value(v) for v in obj]
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj
    return str(obj)


def save_json(output_path: str, payload: Any) -> None:
    """Save a payload to JSON."""

    os.makedirs(os.path.dirname(output_path), exist_ok=True)
    try:
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(to_json_value(payload), f, indent=2, ensure_ascii=False)
        logger.info(f"Saved JSON: {output_path}")
    except Exception as e:
        logger.error(f"Failed to save JSON: {output_path}: {e}")
        raise


def save_parse_result(out_folder: str, result: ParseResult) -> str:
    output_path = os.path.join(out_folder, PARSE_RESULT_FILE_NAME)
    save_json(output_path, result)
    return output_path


def save_emit_result(out_folder: str, result: EmitResult) -> str:
    output_path = os.path.join(out_folder, EMIT_RESULT_FILE_NAME)
    save_json(output_path, result)
    return output_path
