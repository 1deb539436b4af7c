"""Best-effort structured extraction from LLM free text.

Models are asked for "only a JSON object" but routinely wrap it in prose or
markdown fences. The span from the first ``{`` to the last ``}`` is parsed;
no match, a parse failure or a non-object result raise
``StructuredExtractionError`` and callers never see partial data.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from outreach.core.errors import StructuredExtractionError

logger = logging.getLogger(__name__)

_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str | None) -> dict[str, Any]:
    match = _OBJECT_SPAN.search(text or "")
    if match is None:
        logger.warning("No JSON object found in model output (%d chars)", len(text or ""))
        raise StructuredExtractionError("Invalid JSON format in model response", upstream_body=text or "")

    try:
        value = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.warning("Failed to parse extracted JSON: %s", exc)
        raise StructuredExtractionError(
            f"Failed to parse extracted JSON: {exc}",
            upstream_body=match.group(0),
        ) from exc

    if not isinstance(value, dict):
        raise StructuredExtractionError("Extracted JSON is not an object", upstream_body=match.group(0))
    return value
