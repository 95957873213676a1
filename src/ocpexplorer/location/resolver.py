"""Resolve what the OCP says about a clicked coordinate.

The designation lookup is a latitude-banded stand-in for a real parcel
layer: north of 49.21 is treated as detached housing, the band down to
49.205 as multiple-unit housing, and everything south of that as the
high density mixed-use core. It is not a spatial join and says nothing
about the actual parcel at the point.
"""

import logging

from ocpexplorer.core.types import LocationInfo
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.geometry.boundary import BoundaryStore

logger = logging.getLogger(__name__)

# (minimum latitude, land use code, zone code), checked top to bottom
LATITUDE_BANDS: list[tuple[float, str, str]] = [
    (49.21, "RD", "R1"),
    (49.205, "RM", "RM1"),
    (float("-inf"), "MH", "MU2"),
]

RELEVANT_POLICY_CATEGORY = "economy"
MAX_RELEVANT_POLICIES = 2


class LocationResolver:
    def __init__(self, boundary: BoundaryStore, repository: LocalDataRepository):
        self.boundary = boundary
        self.repository = repository

    def resolve(self, lat: float, lng: float) -> LocationInfo:
        check = self.boundary.check(lat, lng)
        if not check.inside:
            return LocationInfo(
                lat=lat,
                lng=lng,
                within_boundary=False,
                boundary_approximate=check.approximate,
            )

        land_use_code, zone_code = next(
            (lu, zone) for min_lat, lu, zone in LATITUDE_BANDS if lat > min_lat
        )
        policies = self.repository.get_policies_by_category(RELEVANT_POLICY_CATEGORY)

        info = LocationInfo(
            lat=lat,
            lng=lng,
            within_boundary=True,
            boundary_approximate=check.approximate,
            land_use=self.repository.get_land_use(land_use_code),
            zoning=self.repository.get_zoning(zone_code),
            policies=tuple(policies[:MAX_RELEVANT_POLICIES]),
        )
        logger.debug(
            "Resolved %.5f, %.5f → %s / %s", lat, lng, land_use_code, zone_code,
        )
        return info
