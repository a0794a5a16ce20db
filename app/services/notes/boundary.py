"""Geographic boundary used to keep notes inside the monitored area"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from shapely.geometry import shape
from shapely.prepared import prep

logger = logging.getLogger(__name__)


class Boundary:
    """
    Prepared polygon boundary

    Containment is strict: a point lying exactly on the boundary line is
    outside.
    """

    def __init__(self, geojson: Dict[str, Any]):
        if geojson.get("type") == "FeatureCollection":
            raise ValueError("Boundary must be a single geometry or feature, not a collection")
        geometry = geojson["geometry"] if geojson.get("type") == "Feature" else geojson
        self.geometry = shape(geometry)
        self._prepared = prep(self.geometry)

    def contains(self, geometry: Dict[str, Any]) -> bool:
        """Whether a GeoJSON geometry is fully inside the boundary"""
        if not geometry:
            return False
        try:
            candidate = shape(geometry)
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            logger.debug(f"Unreadable note geometry {geometry!r}: {e}")
            return False
        return self._prepared.contains(candidate)

    @classmethod
    def from_file(cls, path: str | Path) -> "Boundary":
        with open(path, encoding="utf-8") as f:
            return cls(json.load(f))
