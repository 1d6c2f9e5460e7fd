"""
Pytest configuration and shared fixtures for surface_reflectance tests.

The synthetic look-up tables are linear in scattering angle, sun angle,
AOT (log AOT for intrinsic reflectance) and pressure, so every table
interpolation reproduces the generating functions exactly.
"""

import numpy as np
import pytest
import xarray as xr

from surface_reflectance.constants import (
    AOT_TABLE,
    DEFAULT_ANGLE_GRID,
    LANDSAT,
    LOG_AOT_TABLE,
    NSUNANGLE_VALS,
    NVIEW_ZEN_VALS,
    NSOLAR_ZEN_VALS,
    PRESSURE_TABLE,
    SENTINEL2_ALL_BANDS,
)
from surface_reflectance.correction import AncillaryData
from surface_reflectance.gases import TransmissionCoefficients
from surface_reflectance.geometry import ViewGeometry
from surface_reflectance.lut_reader import LutPaths
from surface_reflectance.tables import LookupTables

#: View zenith rows of the angle tables with full scattering sampling
SAMPLED_VIEW_ROWS = 7


def rolutt_value(band, pressure, log_aot, scattering):
    """Intrinsic reflectance of the synthetic tables."""
    return (0.01 + 0.0005 * scattering + 0.01 * band
            + 0.02 * (log_aot - LOG_AOT_TABLE[0])
            + 0.00004 * (pressure - 500.0))


def transt_value(band, pressure, aot, angle):
    """One-way transmission of the synthetic tables."""
    return (0.95 - 0.002 * angle - 0.03 * aot - 0.001 * band
            + 0.00002 * (pressure - 1013.0))


def sphalbt_value(band, pressure, aot):
    """Spherical albedo of the synthetic tables."""
    return 0.05 + 0.02 * aot + 0.001 * band - 0.00001 * (pressure - 1013.0)


def normext_value(band):
    """Extinction reference of the synthetic tables."""
    return 1.0 + 0.05 * band


def _float32(a):
    return np.asarray(a, dtype=np.float32).astype(np.float64)


def make_angle_tables(grid=DEFAULT_ANGLE_GRID):
    """
    Angle tables with a ragged scattering axis.

    Returns the angle tables by name and the scattering angle of every
    sample of the flattened axis.
    """
    shape = (NVIEW_ZEN_VALS, NSOLAR_ZEN_VALS)
    tts = grid.sun_angles
    ttv = np.zeros(shape)
    ttv[1:] = (grid.xtv_min
               + grid.xtv_step * np.arange(NVIEW_ZEN_VALS - 1))[:, np.newaxis]
    ttv = _float32(ttv)
    ts = np.broadcast_to(tts, shape)

    tsmax = _float32(180.0 - np.abs(ts - ttv))
    tsmin = _float32(np.maximum(180.0 - (ts + ttv), 0.0))
    tsmin[SAMPLED_VIEW_ROWS:] = tsmax[SAMPLED_VIEW_ROWS:]
    nbfi = np.ceil((tsmax - tsmin) / 4.0) + 1.0
    nbfic = np.cumsum(nbfi, axis=0)

    indts = np.zeros(shape, dtype=np.int32)
    indts[0, 1:] = np.cumsum(nbfic[-1])[:-1]
    nsolar = int(nbfic[-1].sum())

    theta = np.empty(nsolar)
    for iv in range(NVIEW_ZEN_VALS):
        for is_ in range(NSOLAR_ZEN_VALS):
            n = int(nbfi[iv, is_])
            start = int(indts[0, is_] + nbfic[iv, is_]) - n
            samples = tsmax[iv, is_] - 4.0 * np.arange(n)
            if n > 1:
                samples[-1] = tsmin[iv, is_]
            theta[start:start + n] = samples

    angle = {
        "tsmax": tsmax,
        "tsmin": tsmin,
        "ttv": ttv,
        "nbfi": nbfi,
        "nbfic": nbfic,
        "indts": indts,
        "tts_table": np.broadcast_to(tts, shape).copy(),
    }
    return angle, theta


def make_band_tables(nfile_bands, theta, grid=DEFAULT_ANGLE_GRID,
                     saturate_aot_index=None):
    """Per file band rolutt, transt, sphalbt and normext."""
    log_aot = LOG_AOT_TABLE.copy()
    if saturate_aot_index is not None:
        log_aot[saturate_aot_index:] = log_aot[saturate_aot_index]

    band = np.arange(nfile_bands)[:, np.newaxis, np.newaxis]
    pres = PRESSURE_TABLE[np.newaxis, :, np.newaxis]

    rolutt = rolutt_value(
        band[..., np.newaxis], pres[..., np.newaxis],
        log_aot[np.newaxis, np.newaxis, :, np.newaxis],
        theta[np.newaxis, np.newaxis, np.newaxis, :])
    transt = transt_value(
        band[..., np.newaxis], pres[..., np.newaxis],
        AOT_TABLE[np.newaxis, np.newaxis, :, np.newaxis],
        grid.sun_angles[np.newaxis, np.newaxis, np.newaxis, :])
    # the last sun angle is not part of the transmission stream
    transt[..., NSUNANGLE_VALS - 1] = 0.0
    sphalbt = sphalbt_value(band, pres, AOT_TABLE[np.newaxis, np.newaxis, :])
    normext = np.broadcast_to(normext_value(band), sphalbt.shape).copy()
    return {"rolutt": rolutt, "transt": transt, "sphalbt": sphalbt,
            "normext": normext}


def make_tables(satellite, saturate_aot_index=None):
    """Frozen in-memory tables of a satellite family."""
    angle, theta = make_angle_tables()
    bands = make_band_tables(satellite.nfile_bands, theta,
                             saturate_aot_index=saturate_aot_index)
    tables = LookupTables.allocate(satellite, nsolar=theta.size)
    for name, values in angle.items():
        getattr(tables, name)[...] = values
    for file_band, iband in satellite.stored_bands():
        if iband is None:
            continue
        for name, values in bands.items():
            getattr(tables, name)[iband] = values[file_band]
    return tables.freeze()


def write_lut_set(directory, satellite):
    """
    Write the four LUT inputs for every file band of a satellite family.

    Returns
    -------
    LutPaths, int
        File locations and length of the scattering axis.
    """
    angle, theta = make_angle_tables()
    bands = make_band_tables(satellite.nfile_bands, theta)
    dims = ("view_zenith_bin", "solar_zenith_bin")

    angle_path = directory / "angle.nc"
    angle_vars = {name.upper(): (dims, values)
                  for name, values in angle.items() if name != "tts_table"}
    angle_vars["TTS"] = (dims, angle["tts_table"])
    xr.Dataset(angle_vars).to_netcdf(angle_path, engine="h5netcdf")

    intrinsic_path = directory / "intrinsic.nc"
    intrinsic_vars = {
        satellite.dataset_name(fb): (
            ("nsolar", "naot", "npres"),
            np.transpose(bands["rolutt"][fb], (2, 1, 0)).astype(np.float32),
        )
        for fb in range(satellite.nfile_bands)
    }
    xr.Dataset(intrinsic_vars).to_netcdf(intrinsic_path, engine="h5netcdf")

    tts = DEFAULT_ANGLE_GRID.sun_angles
    transmission_path = directory / "transmission.txt"
    with open(transmission_path, "w") as f:
        for fb in range(satellite.nfile_bands):
            f.write(f"band {satellite.band_labels[fb]} transmission\n")
            for ip, pres in enumerate(PRESSURE_TABLE):
                f.write(f"pressure {pres:.1f} mb\n")
                for i in range(NSUNANGLE_VALS - 1):
                    values = " ".join(
                        f"{v:.8f}" for v in bands["transt"][fb, ip, :, i])
                    f.write(f"{tts[i]:.4f} {values}\n")

    albedo_path = directory / "spherical_albedo.txt"
    with open(albedo_path, "w") as f:
        for fb in range(satellite.nfile_bands):
            f.write(f"band {satellite.band_labels[fb]} spherical albedo\n")
            for ip, pres in enumerate(PRESSURE_TABLE):
                f.write(f"pressure {pres:.1f} mb\n")
                for iaot, aot in enumerate(AOT_TABLE):
                    f.write(f"{aot:.2f} {bands['sphalbt'][fb, ip, iaot]:.8f} "
                            f"{bands['normext'][fb, ip, iaot]:.8f}\n")

    paths = LutPaths(angle_path, intrinsic_path, transmission_path,
                     albedo_path)
    return paths, theta.size


def make_coefficients(nbands):
    """Plausible per-band gaseous transmission coefficients."""
    band = np.arange(nbands)
    return TransmissionCoefficients(
        tauray=0.2 / (1.0 + band),
        ogtransa1=np.full(nbands, 4.0e-3),
        ogtransb0=np.full(nbands, 0.1),
        ogtransb1=np.full(nbands, -0.05),
        wvtransa=np.full(nbands, 0.02),
        wvtransb=np.full(nbands, 0.6),
        oztransa=np.full(nbands, -0.05),
    )


@pytest.fixture(scope="session")
def landsat_tables():
    """Synthetic Landsat-8 tables."""
    return make_tables(LANDSAT)


@pytest.fixture(scope="session")
def landsat_coefficients():
    """Gaseous coefficients of the 8 Landsat LUT bands."""
    return make_coefficients(LANDSAT.nbands)


@pytest.fixture(scope="session")
def landsat_lut_files(tmp_path_factory):
    """Landsat-8 LUT set on disk."""
    return write_lut_set(tmp_path_factory.mktemp("landsat"), LANDSAT)


@pytest.fixture(scope="session")
def sentinel_lut_files(tmp_path_factory):
    """Sentinel-2 LUT set on disk, all 13 bands."""
    return write_lut_set(tmp_path_factory.mktemp("sentinel"),
                         SENTINEL2_ALL_BANDS)


@pytest.fixture
def typical_geometry():
    """Typical sun and viewing geometry, inside the sampled angle cells."""
    return ViewGeometry(solar_zenith=30.0, view_zenith=10.0,
                        relative_azimuth=60.0)


@pytest.fixture
def sea_level():
    """Sea level atmosphere."""
    return AncillaryData(pressure=1013.0, ozone=0.3, water_vapor=1.5)


# Tolerance values for numerical comparisons
TABLE_ATOL = 1.0e-6       # float32 table storage
REFLECTANCE_ATOL = 1.0e-5
