"""
Tests for the rayleigh module.

Tests the Rayleigh optical depth scaling and the molecular reflectance
approximation.
"""

import numpy as np
import pytest

from surface_reflectance import rayleigh


class TestRayleighOpticalDepth:

    def test_sea_level(self):
        assert rayleigh.rayleigh_optical_depth(0.2, 1013.0) == pytest.approx(0.2)

    def test_scales_with_pressure(self):
        tau = rayleigh.rayleigh_optical_depth(0.2, np.array([1013.0, 506.5]))
        np.testing.assert_allclose(tau, [0.2, 0.1])


class TestMolecularReflectance:
    """Tests for Chandrasekhar's molecular reflectance."""

    def test_positive(self):
        xmus = np.cos(np.deg2rad(np.array([10.0, 30.0, 50.0, 70.0])))
        rho = rayleigh.molecular_reflectance(60.0, 0.95, xmus, 0.1)
        assert np.all(rho > 0.0)
        assert np.all(rho < 1.0)

    def test_symmetric_in_azimuth(self):
        """The reflectance depends on phi through cos(phi) only."""
        rho_p = rayleigh.molecular_reflectance(40.0, 0.9, 0.8, 0.15)
        rho_n = rayleigh.molecular_reflectance(-40.0, 0.9, 0.8, 0.15)
        rho_w = rayleigh.molecular_reflectance(320.0, 0.9, 0.8, 0.15)
        assert rho_p == pytest.approx(rho_n)
        assert rho_p == pytest.approx(rho_w)

    def test_increases_with_optical_depth(self):
        tau = np.array([0.02, 0.05, 0.1, 0.2, 0.3])
        rho = rayleigh.molecular_reflectance(90.0, 0.9, 0.8, tau)
        assert np.all(np.diff(rho) > 0)

    def test_blue_band_magnitude(self):
        """A blue band at moderate geometry reflects several percent."""
        rho = rayleigh.molecular_reflectance(
            60.0, np.cos(np.deg2rad(10.0)), np.cos(np.deg2rad(30.0)), 0.19)
        assert 0.03 < rho < 0.2

    def test_pixel_arrays(self):
        xphi = np.array([[0.0, 45.0], [90.0, 180.0]])
        rho = rayleigh.molecular_reflectance(xphi, 0.9, 0.8, 0.1)
        assert rho.shape == (2, 2)
        scalar = rayleigh.molecular_reflectance(90.0, 0.9, 0.8, 0.1)
        assert rho[1, 0] == pytest.approx(scalar)
