"""Tests for the coordinate → OCP designation resolver.

The designation comes from latitude bands, not a spatial join against
parcels. These tests pin the band edges, not real-world zoning.
"""

import pytest

from ocpexplorer.config import PACKAGE_DATA_DIR
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.geometry.boundary import BoundaryStore
from ocpexplorer.location.resolver import LocationResolver


class TestLatitudeBands:
    @pytest.mark.asyncio
    async def test_north_band_is_detached(self, resolver):
        info = resolver.resolve(49.2192, -122.9127)  # uptown
        assert info.within_boundary
        assert info.land_use.code == "RD"
        assert info.zoning.code == "R1"

    @pytest.mark.asyncio
    async def test_middle_band_is_multiple_unit(self, resolver):
        info = resolver.resolve(49.2057, -122.9110)
        assert info.land_use.code == "RM"
        assert info.zoning.code == "RM1"

    @pytest.mark.asyncio
    async def test_south_band_is_mixed_use(self, resolver):
        info = resolver.resolve(49.2014, -122.9118)  # downtown
        assert info.land_use.code == "MH"
        assert info.zoning.code == "MU2"

    @pytest.mark.asyncio
    async def test_thresholds_are_exclusive(self, resolver):
        # 49.21 exactly falls through to the middle band
        assert resolver.resolve(49.21, -122.9110).land_use.code == "RM"

    @pytest.mark.asyncio
    async def test_relevant_policies(self, resolver):
        info = resolver.resolve(49.2057, -122.9110)
        assert [p.path for p in info.policies] == ["economy.3.1", "economy.3.2"]


class TestOutsideBoundary:
    @pytest.mark.asyncio
    async def test_outside_carries_no_designation(self, resolver):
        info = resolver.resolve(49.2827, -123.1207)
        assert not info.within_boundary
        assert info.land_use is None
        assert info.zoning is None
        assert info.policies == ()

    @pytest.mark.asyncio
    async def test_inside_box_outside_polygons(self, resolver):
        info = resolver.resolve(49.195, -122.90)
        assert not info.within_boundary
        assert not info.boundary_approximate

    @pytest.mark.asyncio
    async def test_fallback_box_is_flagged(self, repository):
        resolver = LocationResolver(BoundaryStore(), repository)
        info = resolver.resolve(49.195, -122.90)
        assert info.within_boundary
        assert info.boundary_approximate
        assert info.land_use.code == "MH"


class TestBeforeDataLoads:
    @pytest.mark.asyncio
    async def test_inside_without_tables(self, boundary):
        resolver = LocationResolver(boundary, LocalDataRepository(str(PACKAGE_DATA_DIR)))
        info = resolver.resolve(49.2057, -122.9110)
        assert info.within_boundary
        assert info.land_use is None
        assert info.zoning is None
        assert info.policies == ()


class TestToDict:
    @pytest.mark.asyncio
    async def test_serializable(self, resolver):
        data = resolver.resolve(49.2057, -122.9110).to_dict()
        assert data["within_boundary"] is True
        assert data["land_use"]["code"] == "RM"
        assert data["zoning"]["max_height"] == "13.7m"
        assert len(data["policies"]) == 2
