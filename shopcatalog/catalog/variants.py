"""Variant grouping.

A combination product stores its variants as flat fragments such as::

    {"<color-attr-id>": "<red-id>", "<size-attr-id>": "<m-id>", "price": "12.00"}

Keys shaped like identifiers (24 hex characters) are attribute axes; the
value is the selected option. Grouping rebuilds, per axis, one record per
option listing the options of the other axes it co-occurs with.
"""

import re
from collections.abc import Hashable, Iterable, Mapping
from typing import Any

IDENTIFIER_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")


def is_identifier(key: Any) -> bool:
    """Check whether a key has the shape of an attribute identifier."""
    return isinstance(key, str) and bool(IDENTIFIER_PATTERN.match(key))


def axis_keys(fragments: Iterable[Mapping[str, Any]]) -> list[str]:
    """Distinct identifier-shaped keys across fragments, in first-seen order."""
    seen: dict[str, None] = {}
    for fragment in fragments:
        for key in fragment:
            if is_identifier(key):
                seen.setdefault(key, None)
    return list(seen)


def group_variants(fragments: Iterable[Mapping[str, Any]] | None) -> dict[str, list[dict[str, Any]]]:
    """Group variant fragments by attribute axis.

    For each axis key, fragments are grouped by their option at that key.
    The first fragment seen for an option seeds ``{axis: option}``; fields
    from every fragment sharing the option are then merged in. Other
    identifier-shaped keys collect into deduplicated lists, scalar fields
    are overwritten so the last fragment wins.

    Args:
        fragments: Raw variant fragments.

    Returns:
        Mapping of axis key to its list of combination records. Empty when
        no fragment declares an axis.
    """
    fragments = [f for f in (fragments or []) if isinstance(f, Mapping)]
    grouped: dict[str, list[dict[str, Any]]] = {}

    for axis in axis_keys(fragments):
        records: dict[Any, dict[str, Any]] = {}

        for fragment in fragments:
            option = fragment.get(axis)
            if not option or not isinstance(option, Hashable):
                continue

            record = records.get(option)
            if record is None:
                record = records[option] = {axis: option}

            for key, value in fragment.items():
                if key == axis or value is None:
                    continue
                if is_identifier(key):
                    options = record.setdefault(key, [])
                    if value not in options:
                        options.append(value)
                else:
                    record[key] = value

        grouped[axis] = list(records.values())

    return grouped
