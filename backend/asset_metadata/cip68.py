"""
CIP68 Metadata Decoder

Turns the tagged datum encoding returned by chain indexers
(`{"constructor": 0, "fields": [...]}`, `{"map": [{"k": .., "v": ..}]}`,
`{"int": ..}`, `{"bytes": ".."}`, `{"list": [...]}`) into plain
dicts, lists, strings and ints.

Decoding is purely structural, there is no schema lookup. Nodes that carry
several shapes at once exist in real on-chain data, so the variant is picked
in a fixed order: fields, map, int, bytes, list.
"""

import logging
from typing import Any, Dict, Optional

from .models import (
    ABSENT,
    BytesNode,
    IntNode,
    ListNode,
    MapNode,
    StructNode,
)

logger = logging.getLogger(__name__)


class MetadataDecodeError(ValueError):
    """Raised when a tagged value cannot be decoded."""


# ============================================
# Hex helpers
# ============================================

def hex_to_string(hex_value: str) -> str:
    """
    Decode hex into a string, one character per byte.

    This is a raw byte-to-char mapping (latin-1 style), not UTF-8 decoding.
    A trailing odd digit is decoded on its own.
    """
    chars = []
    for i in range(0, len(hex_value), 2):
        pair = hex_value[i:i + 2]
        try:
            chars.append(chr(int(pair, 16)))
        except ValueError:
            raise MetadataDecodeError(f"Invalid hex byte {pair!r}") from None
    return "".join(chars)


def string_to_hex(text: str) -> str:
    """Encode a byte-representable string as hex (inverse of hex_to_string)."""
    return "".join(f"{ord(char):02x}" for char in text)


# ============================================
# Parsing raw JSON into tagged nodes
# ============================================

def parse_tagged_value(raw: Any):
    """
    Parse a raw JSON node into a TaggedValue.

    Returns ABSENT for nodes that carry none of the known shapes.
    """
    if not isinstance(raw, dict):
        return ABSENT

    if raw.get("fields") is not None:
        return StructNode(
            fields=tuple(parse_tagged_value(item) for item in _as_sequence(raw["fields"], "fields")),
            constructor=raw.get("constructor"),
        )

    if raw.get("map") is not None:
        pairs = []
        for item in _as_sequence(raw["map"], "map"):
            if not isinstance(item, dict):
                raise MetadataDecodeError(f"Map entry is not an object: {item!r}")
            pairs.append((parse_tagged_value(item.get("k")), parse_tagged_value(item.get("v"))))
        return MapNode(pairs=tuple(pairs))

    if raw.get("int") is not None:
        value = raw["int"]
        if isinstance(value, bool):
            raise MetadataDecodeError(f"Invalid int payload: {value!r}")
        try:
            return IntNode(value=int(value))
        except (TypeError, ValueError, OverflowError):
            raise MetadataDecodeError(f"Invalid int payload: {value!r}") from None

    if raw.get("bytes") is not None:
        value = raw["bytes"]
        if not isinstance(value, str):
            raise MetadataDecodeError(f"Invalid bytes payload: {value!r}")
        return BytesNode(hex=value)

    if raw.get("list") is not None:
        return ListNode(items=tuple(parse_tagged_value(item) for item in _as_sequence(raw["list"], "list")))

    return ABSENT


def _as_sequence(value: Any, name: str) -> list:
    if not isinstance(value, list):
        raise MetadataDecodeError(f"'{name}' payload is not a list")
    return value


# ============================================
# Decoding
# ============================================

def decode(node) -> Any:
    """
    Flatten a TaggedValue into plain Python data.

    - StructNode -> list of decoded fields
    - MapNode    -> dict keyed by the hex-decoded key bytes
    - IntNode    -> int
    - BytesNode  -> str
    - ListNode   -> list
    - ABSENT     -> ABSENT
    """
    if isinstance(node, StructNode):
        return [decode(field) for field in node.fields]

    if isinstance(node, MapNode):
        result: Dict[str, Any] = {}
        for key, value in node.pairs:
            if not isinstance(key, BytesNode):
                raise MetadataDecodeError(f"Map key is not a bytes node: {key!r}")
            # Later duplicates overwrite earlier ones
            result[hex_to_string(key.hex)] = decode(value)
        return result

    if isinstance(node, IntNode):
        return node.value

    if isinstance(node, BytesNode):
        return hex_to_string(node.hex)

    if isinstance(node, ListNode):
        return [decode(item) for item in node.items]

    return ABSENT


def decode_cip68_metadata(raw: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Decode indexer CIP68 metadata keyed by label ("100", "222", "333", "444").

    Any failure empties the whole result: availability over completeness,
    the resolver then falls back to CIP25 metadata.
    """
    if not raw:
        return {}

    try:
        return {
            label: decode(parse_tagged_value(value))
            for label, value in raw.items()
        }
    except MetadataDecodeError as e:
        logger.error(f"[CIP68] Failed to decode metadata: {e}")
        return {}
    except Exception as e:
        logger.error(f"[CIP68] Unexpected error decoding metadata: {type(e).__name__}: {e}")
        return {}
