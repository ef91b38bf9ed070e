"""
Route Profiles - Override Ledger.

============================================================
PURPOSE
============================================================
Merge rule for per-(consumer, route) override records.

    changed_fields  field appended the first time it is touched
    before[f]       first write wins: value seen at the first edit of f
    after[f]        last write wins: value of the most recent edit of f

So a record answers both "what did this consumer change, and
from what" and "what did they most recently enter", across any
number of edits to the same field.

============================================================
"""

from typing import Any, Dict, List, Optional, Tuple


def merge_field_change(
    changed_fields: Optional[List[str]],
    before: Optional[Dict[str, Any]],
    after: Optional[Dict[str, Any]],
    field: str,
    old_value: Any,
    new_value: Any,
) -> Tuple[List[str], Dict[str, Any], Dict[str, Any]]:
    """
    Apply one field edit to an override payload.

    Inputs are not modified; fresh containers are returned so the
    result can be assigned straight back onto JSON columns.

    Returns:
        (changed_fields, before, after)
    """
    merged_fields = list(changed_fields or [])
    if field not in merged_fields:
        merged_fields.append(field)

    merged_before = dict(before or {})
    if field not in merged_before:
        merged_before[field] = old_value

    merged_after = dict(after or {})
    merged_after[field] = new_value

    return merged_fields, merged_before, merged_after
