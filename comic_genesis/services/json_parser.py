import json
import logging
import re

from comic_genesis.core.metrics import increment_json_parse_failure

logger = logging.getLogger(__name__)


def _strip_markdown_fences(text: str) -> str:
    """Remove markdown code fences from LLM output."""
    patterns = [
        r"```json\s*\n?(.*?)\n?```",
        r"```\s*\n?(.*?)\n?```",
    ]
    for pattern in patterns:
        match = re.search(pattern, text, re.DOTALL | re.IGNORECASE)
        if match:
            return match.group(1).strip()
    return text


def _clean_json_text(text: str) -> str:
    """Clean common LLM JSON output issues."""
    cleaned = text.strip()
    cleaned = _strip_markdown_fences(cleaned)

    lines = cleaned.split("\n")

    start_idx = 0
    for i, line in enumerate(lines):
        stripped = line.strip()
        if stripped.startswith("{") or stripped.startswith("["):
            start_idx = i
            break

    end_idx = len(lines) - 1
    for i in range(len(lines) - 1, -1, -1):
        stripped = lines[i].strip()
        if stripped.endswith("}") or stripped.endswith("]"):
            end_idx = i
            break

    cleaned = "\n".join(lines[start_idx : end_idx + 1])

    cleaned = re.sub(r",\s*([}\]])", r"\1", cleaned)

    return cleaned.strip()


def _extract_json_array(text: str) -> str | None:
    """Extract the outermost JSON array using bracket matching."""
    start = text.find("[")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i, char in enumerate(text[start:], start):
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


def parse_json_array(text: str) -> list:
    """Parse a JSON array from structured model output.

    Tries a strict parse first, then progressively more tolerant tiers.

    Raises:
        ValueError: If no tier yields JSON or the root value is not an array.
    """
    if not text or not text.strip():
        increment_json_parse_failure("empty")
        raise ValueError("response text was empty")

    candidates: list[tuple[str, str | None]] = [
        ("direct", text),
        ("cleaned", _clean_json_text(text)),
        ("array", _extract_json_array(text)),
    ]
    for tier, candidate in candidates:
        if candidate is None:
            continue
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            increment_json_parse_failure(tier)
            continue
        if not isinstance(data, list):
            increment_json_parse_failure(f"{tier}_not_array")
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")
        if tier != "direct":
            logger.info("json parsed via %s tier", tier)
        return data

    raise ValueError(f"response was not valid JSON: {text[:200]!r}")
