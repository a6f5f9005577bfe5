from typing import Any, Dict, Mapping, Optional

# Open string-keyed map stored in the audit tables' JSON "metadata" column
Metadata = Dict[str, Any]


def merge_metadata(existing: Optional[Mapping[str, Any]], patch: Optional[Mapping[str, Any]]) -> Metadata:
    """Shallow merge: keys in patch replace keys in existing, nothing else is touched."""
    merged: Metadata = dict(existing or {})
    if patch:
        merged.update(patch)
    return merged
