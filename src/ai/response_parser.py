"""
Validation of detector output.

The model is constrained to a JSON schema, but its output is still checked
here: a payload either matches completely or is rejected as a whole.
"""

import logging
from typing import List

from pydantic import TypeAdapter, ValidationError

from core.exceptions import SchemaError
from core.models import DetectedRegion

logger = logging.getLogger(__name__)

_REGIONS_ADAPTER = TypeAdapter(List[DetectedRegion])


def parse_detection_response(raw_response: str) -> List[DetectedRegion]:
    """
    Parse the model's JSON array of regions.

    Args:
        raw_response: JSON text returned by the model

    Returns:
        Detected regions in the order the model listed them

    Raises:
        SchemaError: If the text is not JSON or any item has the wrong shape
    """
    try:
        return _REGIONS_ADAPTER.validate_json(raw_response)
    except ValidationError as e:
        logger.debug(f"Rejected detector payload: {raw_response[:500]}")
        raise SchemaError(
            "The model returned an invalid detection result",
            {"errors": e.error_count(), "first": _first_error(e)}
        ) from e


def _first_error(error: ValidationError) -> str:
    first = error.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', '')}" if location else first.get("msg", "")
