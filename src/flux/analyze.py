"""Array shape analysis: picks the layout used to encode an array."""

import json
from typing import Any

from .primitives import infer_type
from .types import ArrayAnalysis, FieldInfo, Layout

# Null percentage above which a field is sparse
SPARSE_THRESHOLD = 30.0

# Share of sparse fields above which the whole table is sparse
SPARSE_FIELD_RATIO = 0.3

# A field is a dictionary candidate when its distinct values stay under
# this share of its non-null values, and under the absolute cap
DICTIONARY_RATIO = 0.3
DICTIONARY_MAX_DISTINCT = 50

# Dictionary layout needs more rows than this
DICTIONARY_MIN_ROWS = 10


def analyze_array(values: list, sparse_threshold: float = SPARSE_THRESHOLD) -> ArrayAnalysis:
    """
    Decide how an array should be encoded.

    Arrays of objects sharing the first object's key set become tables
    (columnar, sparse or dictionary); everything else is a list.

    Args:
        values: The array to inspect.
        sparse_threshold: Null percentage above which a field is sparse.

    Returns:
        The layout plus per-field metadata for table layouts.
    """
    if not values or not isinstance(values[0], dict) or not values[0]:
        return ArrayAnalysis(Layout.LIST)

    first = values[0]
    field_names = sorted(first.keys())
    key_set = set(field_names)

    for item in values:
        if not isinstance(item, dict) or set(item.keys()) != key_set:
            return ArrayAnalysis(Layout.LIST)

    total = len(values)
    fields = []
    for name in field_names:
        column = [item[name] for item in values]
        non_null = [v for v in column if v is not None]
        null_count = total - len(non_null)
        distinct_count = len({distinct_key(v) for v in non_null})
        null_percentage = null_count / total * 100

        fields.append(
            FieldInfo(
                name=name,
                tag=infer_type(first[name]),
                null_count=null_count,
                distinct_count=distinct_count,
                null_percentage=null_percentage,
                sparse=null_percentage > sparse_threshold,
                dictionary_candidate=(
                    distinct_count > 0
                    and distinct_count < len(non_null) * DICTIONARY_RATIO
                    and distinct_count < DICTIONARY_MAX_DISTINCT
                ),
            )
        )

    sparse_count = sum(1 for f in fields if f.sparse)
    if sparse_count > len(fields) * SPARSE_FIELD_RATIO:
        return ArrayAnalysis(Layout.SPARSE, fields)

    if total > DICTIONARY_MIN_ROWS and any(f.dictionary_candidate for f in fields):
        return ArrayAnalysis(Layout.DICTIONARY, fields)

    return ArrayAnalysis(Layout.COLUMNAR, fields)


def distinct_key(value: Any) -> tuple[str, Any]:
    """Hashable identity for counting distinct values."""
    if isinstance(value, (dict, list)):
        return ("blob", json.dumps(value, sort_keys=True, default=str))
    # Keep True and 1 apart
    return (type(value).__name__, value)
