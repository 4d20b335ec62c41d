from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

ALL = "all"

def resolve_field(item: Any, path: str) -> Any:
    """Read a dotted path ('product.name') from a model or a dict."""
    value = item
    for part in path.split('.'):
        if value is None:
            return None
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
    return value

def _comparable(value: Any) -> Any:
    # Naive and aware datetimes must not meet in a comparison
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

def _is_active(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and (not value.strip() or value.lower() == ALL):
        return False
    return True

def apply_filters(
    sequence: Iterable[Any],
    search: Optional[str] = None,
    search_fields: Sequence[str] = (),
    equals: Optional[Dict[str, Any]] = None,
    ranges: Optional[Dict[str, Tuple[Any, Any]]] = None,
) -> List[Any]:
    """Keep the items matching every active predicate, in input order.

    search: case-insensitive substring over any of search_fields.
    equals: field -> expected value; None or 'all' disables the predicate.
    ranges: field -> (low, high), inclusive, either bound optional.
    """
    predicates: List[Callable[[Any], bool]] = []

    if _is_active(search) and search_fields:
        needle = search.strip().lower()
        predicates.append(
            lambda item, fs=tuple(search_fields), exp=needle: any(
                exp in str(resolve_field(item, f) or '').lower() for f in fs
            )
        )

    for field, expected in (equals or {}).items():
        if not _is_active(expected):
            continue
        predicates.append(lambda item, f=field, exp=expected: resolve_field(item, f) == exp)

    for field, (low, high) in (ranges or {}).items():
        if low is not None:
            predicates.append(
                lambda item, f=field, lim=_comparable(low): (
                    resolve_field(item, f) is not None and _comparable(resolve_field(item, f)) >= lim
                )
            )
        if high is not None:
            predicates.append(
                lambda item, f=field, lim=_comparable(high): (
                    resolve_field(item, f) is not None and _comparable(resolve_field(item, f)) <= lim
                )
            )

    return [item for item in sequence if all(pred(item) for pred in predicates)]

def parse_order_by(order_by: Optional[str]) -> List[str]:
    if not order_by:
        return []
    return [key.strip() for key in order_by.split(',') if key.strip()]

def apply_ordering(sequence: Iterable[Any], order_by: Optional[Sequence[str]]) -> List[Any]:
    """Stable multi-key sort; '-field' sorts descending, missing values always last."""
    result = list(sequence)
    if not order_by:
        return result
    # Apply multiple ordering keys stable by sorting on each key from last to first
    for key in reversed(list(order_by)):
        desc = key.startswith('-')
        field = key[1:] if desc else key
        present = [x for x in result if resolve_field(x, field) is not None]
        missing = [x for x in result if resolve_field(x, field) is None]
        present.sort(key=lambda x, f=field: _comparable(resolve_field(x, f)), reverse=desc)
        result = present + missing
    return result

def apply_pagination(sequence: List[Any], skip: int = 0, take: Optional[int] = None) -> List[Any]:
    skip = max(skip or 0, 0)
    if take is None or take < 0:
        return sequence[skip:]
    return sequence[skip: skip + take]

def distinct_values(sequence: Iterable[Any], field: str) -> List[Any]:
    """Distinct non-empty values in first-seen order."""
    seen = []
    for item in sequence:
        value = resolve_field(item, field)
        if value not in (None, '') and value not in seen:
            seen.append(value)
    return seen
