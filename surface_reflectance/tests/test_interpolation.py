"""
Tests for the interpolation module.

The synthetic tables are linear in every interpolated coordinate, so the
interpolated values must reproduce the generating functions.
"""

import numpy as np
import pytest

from surface_reflectance import geometry, interpolation
from surface_reflectance.constants import AOT_TABLE, DEFAULT_ANGLE_GRID
from surface_reflectance.errors import ZenithAngleError

from .conftest import TABLE_ATOL, rolutt_value, sphalbt_value, transt_value

GRID = DEFAULT_ANGLE_GRID


def _intrinsic(tables, iband, g, pressure, aot):
    brackets = geometry.locate(pressure, aot)
    its = geometry.solar_angle_bin(g.solar_zenith)
    itv = geometry.view_angle_bin(g.view_zenith)
    return interpolation.intrinsic_reflectance(
        tables, iband, brackets, g.solar_zenith, g.view_zenith,
        g.xmus, g.xmuv, g.cosxfi, its, itv)


class TestIntrinsicReflectance:
    """Tests for intrinsic reflectance interpolation."""

    @pytest.mark.parametrize("pressure,aot", [
        (1013.0, 0.1), (980.0, 0.27), (640.0, 1.7), (1013.0, 4.2),
    ])
    def test_reproduces_table_function(self, landsat_tables,
                                       typical_geometry, pressure, aot):
        """Scattering, angle, log-AOT and pressure interpolation are exact."""
        roatm = _intrinsic(landsat_tables, 3, typical_geometry, pressure, aot)
        scaa = typical_geometry.scattering_angle
        expected = rolutt_value(3, pressure, np.log(aot), scaa)
        assert roatm == pytest.approx(expected, abs=TABLE_ATOL)

    def test_band_offset(self, landsat_tables, typical_geometry):
        """Each band addresses its own block of the table."""
        ro0 = _intrinsic(landsat_tables, 0, typical_geometry, 1013.0, 0.2)
        ro5 = _intrinsic(landsat_tables, 5, typical_geometry, 1013.0, 0.2)
        assert ro5 - ro0 == pytest.approx(0.05, abs=TABLE_ATOL)

    def test_monotonic_in_aot(self, landsat_tables, typical_geometry):
        """Log-AOT interpolation keeps monotonic tables monotonic."""
        aot = np.linspace(0.02, 4.9, 300)
        roatm = _intrinsic(landsat_tables, 1, typical_geometry, 900.0, aot)
        assert roatm.shape == aot.shape
        assert np.all(np.diff(roatm) > 0)

    def test_pixel_arrays(self, landsat_tables):
        """Per-pixel geometry is interpolated element by element."""
        g = geometry.ViewGeometry(
            solar_zenith=np.array([[20.0, 35.0], [45.0, 62.0]]),
            view_zenith=np.array([[5.0, 12.0], [20.0, 28.0]]),
            relative_azimuth=np.array([[10.0, 90.0], [135.0, 170.0]]),
        )
        roatm = _intrinsic(landsat_tables, 2, g, 1013.0, 0.3)
        expected = rolutt_value(2, 1013.0, np.log(0.3), g.scattering_angle)
        np.testing.assert_allclose(roatm, expected, atol=TABLE_ATOL)

    def test_edge_corners_use_table_value(self, landsat_tables):
        """Corners on the first sun bin skip scattering interpolation."""
        g = geometry.ViewGeometry(2.0, 10.0, relative_azimuth=45.0)
        roatm = _intrinsic(landsat_tables, 0, g, 1013.0, 0.1)

        itv = 2
        tts = GRID.sun_angles
        ttv = landsat_tables.ttv
        tsmax = landsat_tables.tsmax
        t = (tts[1] - 2.0) / (tts[1] - tts[0])
        u = (ttv[itv + 1, 0] - 10.0) / (ttv[itv + 1, 0] - ttv[itv, 0])

        def value(theta):
            return rolutt_value(0, 1013.0, np.log(0.1), theta)

        ro0 = value(tsmax[itv, 0])
        ro2 = value(tsmax[itv + 1, 0])
        interior = value(g.scattering_angle)
        expected = (interior + t * (ro2 - interior)
                    + u * t * (ro0 - ro2))
        assert roatm == pytest.approx(expected, abs=TABLE_ATOL)

    def test_edge_corners_first_view_bin(self, landsat_tables):
        """Near-nadir views use the first view bin as edge corners."""
        g = geometry.ViewGeometry(30.0, 1.0, relative_azimuth=45.0)
        assert geometry.view_angle_bin(1.0) == 0
        roatm = _intrinsic(landsat_tables, 1, g, 1013.0, 0.1)

        its = 7
        tts = GRID.sun_angles
        ttv = landsat_tables.ttv
        tsmax = landsat_tables.tsmax
        t = (tts[its + 1] - 30.0) / (tts[its + 1] - tts[its])
        u = (ttv[1, its] - 1.0) / (ttv[1, its] - ttv[0, its])

        def value(theta):
            return rolutt_value(1, 1013.0, np.log(0.1), theta)

        ro0 = value(tsmax[0, its])
        ro1 = value(tsmax[0, its + 1])
        interior = value(g.scattering_angle)
        expected = interior + u * (ro1 - interior) + u * t * (ro0 - ro1)
        assert roatm == pytest.approx(expected, abs=TABLE_ATOL)


class TestTransmission:
    """Tests for transmission interpolation."""

    @pytest.mark.parametrize("zenith", [0.0, 13.0, 30.0, 57.5, 76.0])
    def test_sun_path(self, landsat_tables, zenith):
        brackets = geometry.locate(870.0, 0.45)
        xtts = interpolation.transmission(
            landsat_tables, 4, brackets, zenith, GRID.xts_min, GRID.xts_step)
        assert xtts == pytest.approx(
            transt_value(4, 870.0, 0.45, zenith), abs=TABLE_ATOL)

    def test_view_path(self, landsat_tables):
        """The view path is binned on the view grid."""
        brackets = geometry.locate(1013.0, 0.1)
        xttv = interpolation.transmission(
            landsat_tables, 1, brackets, 10.0, GRID.xtv_min, GRID.xtv_step)
        assert xttv == pytest.approx(
            transt_value(1, 1013.0, 0.1, 10.0), abs=TABLE_ATOL)

    def test_linear_in_aot(self, landsat_tables):
        aot = np.array([0.1, 0.125, 0.15])
        brackets = geometry.locate(1013.0, aot)
        xtts = interpolation.transmission(
            landsat_tables, 0, brackets, 20.0, GRID.xts_min, GRID.xts_step)
        assert xtts[1] == pytest.approx(0.5 * (xtts[0] + xtts[2]), abs=TABLE_ATOL)

    def test_zenith_too_large(self, landsat_tables):
        brackets = geometry.locate(1013.0, 0.1)
        with pytest.raises(ZenithAngleError):
            interpolation.transmission(
                landsat_tables, 0, brackets, 81.0, GRID.xts_min, GRID.xts_step)


class TestSphericalAlbedo:
    """Tests for spherical albedo interpolation."""

    @pytest.mark.parametrize("pressure,aot", [
        (1013.0, 0.1), (1030.0, 0.33), (520.0, 2.9),
    ])
    def test_reproduces_table_function(self, landsat_tables, pressure, aot):
        brackets = geometry.locate(pressure, aot)
        satm = interpolation.spherical_albedo(landsat_tables, 6, brackets)
        assert satm == pytest.approx(
            sphalbt_value(6, pressure, aot), abs=TABLE_ATOL)

    def test_at_nodes(self, landsat_tables):
        """At table nodes the stored values are returned."""
        brackets = geometry.locate(1013.0, AOT_TABLE)
        satm = interpolation.spherical_albedo(landsat_tables, 2, brackets)
        np.testing.assert_allclose(satm, landsat_tables.sphalbt[2, 1],
                                   atol=TABLE_ATOL)
