"""JSON snapshot renderer."""

from __future__ import annotations

import json

from gpmeta import __version__
from gpmeta.snapshot import MetadataSnapshot


def render(snapshot: MetadataSnapshot) -> str:
    """Render a MetadataSnapshot as a JSON string.

    Object order is the dependency order and keys are sorted, so two
    extractions of an unchanged catalog give identical output.
    """
    data = {
        "meta": {
            "tool": "gpmeta",
            "version": __version__,
            "object_count": len(snapshot),
            "cycle_count": len(snapshot.cycles),
        },
        **snapshot.to_dict(),
    }
    return json.dumps(data, indent=2, sort_keys=True, default=str)
