"""XML -> JSON transcoding and timestamp stamping.

Shape (xmltodict conventions):
- the root element stays one object keyed by its tag: {"root": {...}}
- attributes become "@name" siblings of child elements
- text next to attributes/children becomes "#text"; bare leaf text is a string
- repeated sibling elements become arrays
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from xml.parsers.expat import ExpatError

import xmltodict


class ConvertErrorKind(str, Enum):
    MALFORMED = "malformed"


class ConvertError(RuntimeError):
    def __init__(self, message: str, kind: ConvertErrorKind = ConvertErrorKind.MALFORMED):
        super().__init__(message)
        self.kind = kind


def convert(xml_text: str) -> Dict[str, Any]:
    if not xml_text or not xml_text.strip():
        raise ConvertError("invalid XML: empty document")
    try:
        doc = xmltodict.parse(xml_text)
    except ExpatError as e:
        raise ConvertError(f"invalid XML: {e}") from e

    if not isinstance(doc, dict) or len(doc) != 1:
        raise ConvertError("invalid XML: expected a single root element")

    # sanity: the result must survive a JSON round-trip
    return json.loads(json.dumps(doc))


def stamp(document: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    ts = (now or datetime.now(timezone.utc)).astimezone(timezone.utc).isoformat()
    out = dict(document)
    out["timestamp"] = ts
    return out


def to_json_text(document: Dict[str, Any]) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"
