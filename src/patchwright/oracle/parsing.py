"""
Defensive parsing of oracle replies.

parse_response() returns either ParsedResponse (fields found) or Unparsable.
Consumers check which one they got and fall back to the most conservative
decision on Unparsable or on any missing/malformed field.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .config import CODE_FENCE_LANGUAGES


_JSON_FENCE = re.compile(r"```json\s*\n([\s\S]*?)```", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_KEY_VALUE = re.compile(r"^\s*\**([A-Za-z_][A-Za-z0-9_ ]*?)\**\s*:\s*\**\s*(.*?)\s*$")
_CODE_FENCE = re.compile(
    r"```(?:" + "|".join(CODE_FENCE_LANGUAGES) + r")?[ \t]*\n([\s\S]*?)```",
    re.IGNORECASE,
)
_FILE_BLOCK = re.compile(r"```(?:\w+)?[ \t]*\n(?://\s*FILE:\s*(.+?)\n)?([\s\S]*?)```")


@dataclass
class ParsedResponse:
    fields: Dict[str, Any]
    raw: str = ""
    payload: Any = None  # decoded JSON (object or array) when the reply was JSON


@dataclass
class Unparsable:
    raw: str
    reason: str = "no structured content"


OracleReply = Union[ParsedResponse, Unparsable]


def parse_response(text: Optional[str]) -> OracleReply:
    """
    Try, in order: fenced ```json block, bare JSON object/array,
    line-oriented KEY: value pairs.
    """
    if not text or not text.strip():
        return Unparsable(raw=text or "", reason="empty reply")

    payload = extract_json(text)
    if isinstance(payload, dict):
        return ParsedResponse(fields={str(k).lower(): v for k, v in payload.items()}, raw=text, payload=payload)
    if isinstance(payload, list):
        return ParsedResponse(fields={}, raw=text, payload=payload)

    fields = {}
    for line in text.splitlines():
        match = _KEY_VALUE.match(line)
        if match:
            key = match.group(1).strip().lower().replace(" ", "_")
            fields.setdefault(key, match.group(2))
    if fields:
        return ParsedResponse(fields=fields, raw=text)

    return Unparsable(raw=text)


def extract_json(text: str) -> Any:
    """Decode the first JSON value found in a reply, or None."""
    candidates = [m.group(1) for m in _JSON_FENCE.finditer(text)]
    # whichever bare value starts first, so [{...}] stays an array
    bare = [m for m in (_JSON_OBJECT.search(text), _JSON_ARRAY.search(text)) if m]
    candidates.extend(m.group(0) for m in sorted(bare, key=lambda m: m.start()))

    for candidate in candidates:
        try:
            return json.loads(candidate.strip())
        except ValueError:
            continue
    return None


def field_str(reply: OracleReply, key: str, default: str = "") -> str:
    if not isinstance(reply, ParsedResponse):
        return default
    value = reply.fields.get(key)
    if value is None:
        return default
    return str(value).strip()


def field_bool(reply: OracleReply, key: str, default: bool = False) -> bool:
    if not isinstance(reply, ParsedResponse) or key not in reply.fields:
        return default
    value = reply.fields[key]
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("yes", "true", "y", "1"):
        return True
    if text in ("no", "false", "n", "0"):
        return False
    return default


def field_int(reply: OracleReply, key: str, default: int = 0, lower: int = 0, upper: int = 100) -> int:
    if not isinstance(reply, ParsedResponse) or key not in reply.fields:
        return default
    value = reply.fields[key]
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        number = int(value)
    else:
        match = re.search(r"-?\d+", str(value))
        if not match:
            return default
        number = int(match.group(0))
    return max(lower, min(upper, number))


def field_list(reply: OracleReply, key: str) -> List[str]:
    """List field from a JSON array or a comma-separated string."""
    if not isinstance(reply, ParsedResponse) or key not in reply.fields:
        return []
    value = reply.fields[key]
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return []


def extract_code_block(text: Optional[str]) -> Optional[str]:
    """Return the first fenced source block, or None."""
    if not text:
        return None
    match = _CODE_FENCE.search(text)
    if not match:
        return None
    code = match.group(1).strip("\n")
    return code if code.strip() else None


def extract_file_blocks(text: Optional[str]) -> List[Tuple[Optional[str], str]]:
    """
    Split a multi-file reply into (path, code) pairs.

    Blocks look like:
        ```tsx
        // FILE: src/App.tsx
        ...
        ```
    The path is None when a block has no FILE header.
    """
    if not text:
        return []
    blocks = []
    for match in _FILE_BLOCK.finditer(text):
        path = match.group(1).strip() if match.group(1) else None
        code = match.group(2).strip("\n")
        if code.strip():
            blocks.append((path, code))
    return blocks
