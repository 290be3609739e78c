"""Tag extraction from heterogeneously shaped describe / list-tags responses.

AWS tag APIs disagree on where tags live and how they are shaped:

* Lambda, Glue and CloudWatch Logs return a plain ``{key: value}`` mapping.
* S3 (``TagSet``), SSM (``TagList``) and most other services return a list
  of ``{"Key": ..., "Value": ...}`` records.
* KMS returns ``{"TagKey": ..., "TagValue": ...}`` records.

:func:`extract_tags` normalises all of these into one ``dict[str, str]``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

from stack_tag_audit.errors import TagExtractionError

# Priority order; matched case-insensitively.
TAG_FIELD_ALIASES: tuple[str, ...] = ("Tags", "TagSet", "TagList")

_PAIR_FIELDS: tuple[tuple[str, str], ...] = (
    ("Key", "Value"),
    ("TagKey", "TagValue"),
)

_METADATA_FIELDS = frozenset({"ResponseMetadata"})


def _describe(record: Mapping[str, Any]) -> str:
    return json.dumps(record, default=str, sort_keys=True)[:500]


def _payload_fields(record: Mapping[str, Any]) -> list[str]:
    return [name for name in record if name not in _METADATA_FIELDS]


def find_tag_field(record: Mapping[str, Any], skip: frozenset[str] = frozenset()) -> str | None:
    """Return the first field of *record* naming a tag collection, in alias priority order."""
    by_lower = {name.lower(): name for name in _payload_fields(record)}
    for alias in TAG_FIELD_ALIASES:
        name = by_lower.get(alias.lower())
        if name is not None and name not in skip:
            return name
    return None


def unwrap_response(response: Mapping[str, Any]) -> Mapping[str, Any]:
    """Descend through wrapper layers until a record carrying a tag field is reached.

    A wrapper layer keeps its payload in its first (non-metadata) field.
    Unwrapping stops at the first record that has a tag field, or when the
    first field is not itself a record.
    """
    record = response
    while find_tag_field(record) is None:
        fields = _payload_fields(record)
        if not fields:
            break
        inner = record[fields[0]]
        if not isinstance(inner, Mapping):
            break
        record = inner
    return record


def _fold_pairs(items: Sequence[Any]) -> dict[str, str]:
    tags: dict[str, str] = {}
    for item in items:
        if not isinstance(item, Mapping):
            continue
        for key_field, value_field in _PAIR_FIELDS:
            if key_field in item:
                value = item.get(value_field)
                tags[str(item[key_field])] = "" if value is None else str(value)
                break
    return tags


def tags_from_value(value: Any) -> dict[str, str]:
    """Interpret a tag field's value as a mapping or a list of key/value records."""
    if isinstance(value, Mapping):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return _fold_pairs(value)
    return {}


def extract_tags(response: Mapping[str, Any]) -> dict[str, str]:
    """Locate and normalise the tag collection carried by *response*.

    A direct mapping is returned as-is, even when empty.  A list of pair
    records is folded into a mapping, later duplicates overwriting earlier
    ones.  If the list yields nothing, the remaining alias fields are tried
    before giving up.

    Raises
    ------
    TagExtractionError
        If no alias field is present, or every present one is empty or
        unreadable.
    """
    record = unwrap_response(response)
    name = find_tag_field(record)
    if name is None:
        raise TagExtractionError(f"tags field not found in response: {_describe(record)}")

    value = record[name]
    if isinstance(value, Mapping):
        return tags_from_value(value)

    tried: set[str] = set()
    while name is not None:
        tags = tags_from_value(record[name])
        if tags:
            return tags
        tried.add(name)
        name = find_tag_field(record, skip=frozenset(tried))

    raise TagExtractionError(
        f"unable to read tags from {'/'.join(sorted(tried))}: {_describe(record)}"
    )
