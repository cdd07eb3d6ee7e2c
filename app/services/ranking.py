from __future__ import annotations

from typing import Iterable, List

from app.models import Coordinate, RankedPOI, RawPOI
from app.services.geodesy import distance

DEFAULT_LIMIT = 5


def rank(candidates: Iterable[RawPOI], reference: Coordinate, limit: int = DEFAULT_LIMIT) -> List[RankedPOI]:
    """Nearest-first top-N of the candidates that have a position.

    Candidates without a coordinate are dropped silently. The sort is stable, so
    equal distances keep the provider's order.
    """
    ranked = [
        RankedPOI(
            id=poi.id,
            osm_type=poi.osm_type,
            osm_id=poi.osm_id,
            coordinate=poi.coordinate,
            tags=poi.tags,
            distance_m=distance(reference, poi.coordinate),
        )
        for poi in candidates
        if poi.coordinate is not None
    ]
    ranked.sort(key=lambda p: p.distance_m)
    return ranked[: max(0, limit)]
