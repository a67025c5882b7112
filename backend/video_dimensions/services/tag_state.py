"""Reading and rewriting the directive tokens stored in a file's ``tags`` text.

The host store keeps ``tags`` as free-form text: usually a JSON array of
strings, sometimes a comma-separated list. Values are parsed once into a
:class:`TagSet` that remembers which shape it came from, so rewrites go back
out in the same shape.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

REPROCESS_TAG = "reprocess"
FAILED_TAG = "processing-failed"

_OVERRIDE_RE = re.compile(r"reprocess:(\d+)x(\d+)", re.IGNORECASE)


class TagShape(str, enum.Enum):
    empty = "empty"
    json_array = "json_array"
    comma_list = "comma_list"


class TagStateKind(str, enum.Enum):
    none = "none"
    override = "override"
    reprocess = "reprocess"
    failed = "failed"


@dataclass(frozen=True)
class TagSet:
    tokens: tuple[Any, ...]
    shape: TagShape

    def contains(self, value: str) -> bool:
        wanted = value.lower()
        return any(isinstance(token, str) and token.lower() == wanted for token in self.tokens)

    def without_directives(self) -> TagSet:
        return TagSet(tokens=tuple(t for t in self.tokens if not is_directive_token(t)), shape=self.shape)

    def with_token(self, value: str) -> TagSet:
        if self.contains(value):
            return self
        shape = TagShape.json_array if self.shape == TagShape.empty else self.shape
        return TagSet(tokens=(*self.tokens, value), shape=shape)

    def dump(self) -> str | None:
        """Serialize back to the stored text; ``None`` when no tokens remain."""
        if not self.tokens:
            return None
        if self.shape == TagShape.comma_list:
            return ",".join(self.tokens)
        return json.dumps(list(self.tokens), ensure_ascii=False, separators=(",", ":"))


@dataclass(frozen=True)
class TagState:
    kind: TagStateKind
    width: int | None = None
    height: int | None = None

    @property
    def has_directive(self) -> bool:
        return self.kind in (TagStateKind.override, TagStateKind.reprocess)


def is_directive_token(token: Any) -> bool:
    if not isinstance(token, str):
        return False
    return token.lower() == REPROCESS_TAG or _OVERRIDE_RE.fullmatch(token) is not None


def _parse_json_array(text: str) -> tuple[Any, ...]:
    try:
        data = json.loads(text)
    except ValueError:
        logger.debug("tags_unparseable", extra={"tags": text})
        return ()
    if not isinstance(data, list):
        return ()
    # Non-string items are kept as-is and never count as directives.
    tokens = (item.strip() if isinstance(item, str) else item for item in data if item is not None)
    return tuple(token for token in tokens if token != "")


def parse_tags(raw: str | None) -> TagSet:
    text = (raw or "").strip()
    if not text:
        return TagSet(tokens=(), shape=TagShape.empty)
    if text.startswith("[") and text.endswith("]"):
        return TagSet(tokens=_parse_json_array(text), shape=TagShape.json_array)
    tokens = tuple(part.strip() for part in text.split(",") if part.strip())
    return TagSet(tokens=tokens, shape=TagShape.comma_list)


def classify(tag_set: TagSet) -> TagState:
    """Reduce a parsed tag set to the single state that drives reconciliation.

    ``processing-failed`` wins over everything, then the first well-formed
    ``reprocess:WxH`` override with positive sides, then a bare ``reprocess``.
    Override tokens with a zero side or non-digit sides are not directives.
    """
    if tag_set.contains(FAILED_TAG):
        return TagState(kind=TagStateKind.failed)
    for token in tag_set.tokens:
        if not isinstance(token, str):
            continue
        match = _OVERRIDE_RE.fullmatch(token)
        if match is None:
            continue
        width, height = int(match.group(1)), int(match.group(2))
        if width > 0 and height > 0:
            return TagState(kind=TagStateKind.override, width=width, height=height)
    if tag_set.contains(REPROCESS_TAG):
        return TagState(kind=TagStateKind.reprocess)
    return TagState(kind=TagStateKind.none)


def classify_tags(raw: str | None) -> TagState:
    return classify(parse_tags(raw))


def clear_directives(raw: str | None) -> str | None:
    """Drop every ``reprocess`` / ``reprocess:WxH`` token, keeping the stored shape."""
    return parse_tags(raw).without_directives().dump()


def mark_failed(raw: str | None) -> str:
    """Add the ``processing-failed`` marker unless it is already present."""
    tagged = parse_tags(raw).with_token(FAILED_TAG)
    return tagged.dump() or json.dumps([FAILED_TAG])
