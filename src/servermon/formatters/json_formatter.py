"""JSON serialization of snapshots.

This is the wire format used by the API sink and by ``servermon once``:
one JSON document per snapshot, produced by pydantic's ``model_dump`` with
ISO-8601 timestamps.
"""

from __future__ import annotations

import json
from typing import Any

from servermon.models.snapshot import MetricSnapshot


def snapshot_to_dict(snapshot: MetricSnapshot) -> dict[str, Any]:
    """JSON-compatible dict of ``snapshot``.

    Error snapshots omit their empty sections; normal snapshots omit
    ``error``.
    """
    data = snapshot.model_dump(mode="json")
    if snapshot.is_error:
        return {k: v for k, v in data.items() if v is not None}
    data.pop("error", None)
    return data


def snapshot_to_json(snapshot: MetricSnapshot, pretty: bool = False) -> str:
    """Serialize one snapshot.

    Args:
        snapshot: The snapshot to serialize
        pretty: Indent output instead of the compact single-line form

    Returns:
        JSON string representation

    Example:
        >>> snapshot_to_json(snapshot)
        '{"timestamp":"2024-01-15T10:30:00Z","server":{"hostname":"web-1",...}}'
    """
    output = snapshot_to_dict(snapshot)
    if pretty:
        return json.dumps(output, indent=2, ensure_ascii=False)
    return json.dumps(output, ensure_ascii=False, separators=(",", ":"))
