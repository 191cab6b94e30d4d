"""Recovery of schedule JSON from model output that is fenced, truncated or sloppy."""

import json
import logging
import re
from typing import Any, Dict

from fastapi import HTTPException

logger = logging.getLogger(__name__)

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_LAST_COMPLETE_OBJECT = re.compile(r".*(\}\s*,|\}\s*\])", re.DOTALL)
_PARTIAL_SCHEDULE = re.compile(r'"schedule"\s*:\s*\{([\s\S]*)')

# Applied in order, each at most once, to the tail of the text
_TRAILING_FRAGMENTS = [
    re.compile(r',\s*"[^"]*\Z'),  # key without value
    re.compile(r',\s*"[^"]*":\s*\Z'),  # key with colon
    re.compile(r',\s*"[^"]*":\s*"[^"]*\Z'),  # unterminated string value
    re.compile(r',\s*"[^"]*":\s*\{[^}]*\Z'),  # unterminated object value
    re.compile(r",\s*\{[^}]*\Z"),  # unterminated object in array
    re.compile(r",\s*\Z"),
]
_COMMA_BEFORE_CLOSER = re.compile(r",(\s*[}\]])")

MIN_RESPONSE_LENGTH = 10


def attempt_json_repair(text: str) -> str:
    repaired = text.strip()

    match = _LAST_COMPLETE_OBJECT.match(repaired)
    if match:
        token = match.group(1)
        last_good = repaired.rfind(token)
        if 0 < last_good < len(repaired) - 10:
            cut = last_good + len(token)
            after = repaired[cut:].strip()
            if after and not after.startswith(('"', "{", "}")):
                repaired = repaired[:cut]

    for pattern in _TRAILING_FRAGMENTS:
        repaired = pattern.sub("", repaired, count=1)

    open_braces = repaired.count("{")
    close_braces = repaired.count("}")
    open_brackets = repaired.count("[")
    close_brackets = repaired.count("]")

    # arrays first, then objects
    repaired += "]" * max(0, open_brackets - close_brackets)
    repaired += "}" * max(0, open_braces - close_braces)

    return _COMMA_BEFORE_CLOSER.sub(r"\1", repaired)


def extract_json_text(content: str) -> str:
    text = (content or "").strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()
        logger.info("Extracted JSON from markdown fence")
    return text


def parse_schedule_response(content: str) -> Dict[str, Any]:
    """Parse the model's reply into a dict holding a ``schedule`` object.

    Tries a plain parse, then :func:`attempt_json_repair`, then rebuilds a
    document from whatever follows ``"schedule": {``.
    """
    text = extract_json_text(content)
    if len(text) < MIN_RESPONSE_LENGTH:
        raise HTTPException(status_code=500, detail="AI response is too short to be valid JSON")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as first_error:
        logger.info("First parse failed (%s), attempting JSON repair", first_error)
        repaired = attempt_json_repair(text)
        logger.debug("Repaired JSON tail: %s", repaired[-200:])
        try:
            data = json.loads(repaired)
            logger.info("JSON repair successful")
        except json.JSONDecodeError as repair_error:
            logger.error("JSON repair failed: %s", repair_error)
            data = _recover_partial_schedule(repaired)

    if not isinstance(data, dict) or not isinstance(data.get("schedule"), dict):
        raise HTTPException(status_code=500, detail="AI response missing valid schedule object")
    return data


def _recover_partial_schedule(repaired: str) -> Dict[str, Any]:
    match = _PARTIAL_SCHEDULE.search(repaired)
    if not match:
        raise HTTPException(status_code=500, detail="AI generated incomplete response. Please try again.")
    try:
        data = json.loads(attempt_json_repair('{"schedule":{' + match.group(1)))
    except json.JSONDecodeError as partial_error:
        logger.error("Partial recovery failed: %s", partial_error)
        raise HTTPException(status_code=500, detail="AI generated incomplete response. Please try again.")
    logger.info("Partial schedule recovery successful")
    return data
