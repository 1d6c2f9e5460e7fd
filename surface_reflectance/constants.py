"""
Table extents, reference grids and satellite parameters for surface reflectance.

This module contains constants used throughout the correction engine,
including:

- Fixed extents of the radiative-transfer look-up tables
- Reference surface pressure and aerosol optical thickness (AOT) grids
- Default solar/view zenith angle grid of the angle tables
- Satellite-specific band catalogs (Landsat-8/9, Sentinel-2)

The numeric values must match the ones the look-up tables were generated
with; changing them breaks compatibility with the LUT files.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Tuple

import numpy as np

# =============================================================================
# Look-Up Table Extents
# =============================================================================

#: Number of reference surface pressure levels
NPRES_VALS: int = 7

#: Number of reference AOT values at 550 nm
NAOT_VALS: int = 22

#: Length of the flattened (ragged) scattering-angle axis of the
#: intrinsic reflectance table
NSOLAR_VALS: int = 8000

#: Number of sun angles along the transmission table angle axis
NSUNANGLE_VALS: int = 22

#: Number of view zenith rows in the angle tables
NVIEW_ZEN_VALS: int = 20

#: Number of solar zenith columns in the angle tables
NSOLAR_ZEN_VALS: int = 22

#: Shape of the INDTS and TTS tables stored in the angle container
INDEX_TABLE_SHAPE: Tuple[int, int] = (20, 22)

#: Number of polynomial coefficients of the fast-path fits (cubic)
NCOEF: int = 4

# =============================================================================
# Reference Grids
# =============================================================================

#: Standard sea level pressure [mb] used to normalise surface pressure
ATMOS_PRES_0: float = 1013.0

#: Reciprocal of the standard sea level pressure [1/mb]
ONE_DIV_ATMOS_PRES_0: float = 1.0 / ATMOS_PRES_0

#: Surface pressure levels of the tables [mb], descending
PRESSURE_TABLE: np.ndarray = np.array(
    [1050.0, 1013.0, 900.0, 800.0, 700.0, 600.0, 500.0]
)

#: AOT at 550 nm of the tables, strictly increasing
AOT_TABLE: np.ndarray = np.array([
    0.01, 0.05, 0.10, 0.15, 0.20, 0.30, 0.40, 0.60, 0.80, 1.00, 1.20,
    1.40, 1.60, 1.80, 2.00, 2.30, 2.60, 3.00, 3.50, 4.00, 4.50, 5.00,
])

#: Natural log of AOT_TABLE, as tabulated with the LUTs (the entry for 2.0
#: is 1e-5 above log(2); interpolation weights depend on it)
LOG_AOT_TABLE: np.ndarray = np.array([
    -4.605170186, -2.995732274, -2.302585093,
    -1.897119985, -1.609437912, -1.203972804,
    -0.916290732, -0.510825624, -0.223143551,
    0.000000000, 0.182321557, 0.336472237,
    0.470003629, 0.587786665, 0.693157181,
    0.832909123, 0.955511445, 1.098612289,
    1.252762969, 1.386294361, 1.504077397,
    1.609437912,
])

#: Number of AOT entries scanned when bracketing (one short of the table so
#: the last two entries stay available as a bracket)
AOT_SCAN_LIMIT: int = 21

#: Largest valid sun angle bin of the tables
MAX_SOLAR_BIN: int = 19

#: Spacing of the tabulated scattering angle samples [degrees]
SCATTERING_STEP: float = 4.0

#: Maximum allowed difference between the transmission file angle column and
#: the derived sun angle axis
TRANSMISSION_AXIS_TOLERANCE: float = 1.0e-5

#: Scale factor converting wavelength [um] to a ratio relative to 550 nm
LAMBDA_SCALE: float = 1.0 / 0.55

#: AOT table entry holding the extinction reference used for spectral AOT
#: adjustment (pressure level 0, AOT index 3)
NORMEXT_REFERENCE_AOT_INDEX: int = 3

# =============================================================================
# Angle Grid
# =============================================================================


@dataclass(frozen=True)
class AngleGrid:
    """
    Solar and view zenith sampling of the angle tables.

    Attributes
    ----------
    xts_min : float
        Minimum solar zenith angle [degrees].
    xts_step : float
        Solar zenith step [degrees].
    xtv_min : float
        Minimum view zenith angle [degrees].
    xtv_step : float
        View zenith step [degrees].
    """

    xts_min: float = 0.0
    xts_step: float = 4.0
    xtv_min: float = 2.84090
    xtv_step: float = 6.0

    @property
    def sun_angles(self) -> np.ndarray:
        """Sun angle axis ``tts[j] = xts_min + xts_step * j`` [degrees]."""
        return self.xts_min + self.xts_step * np.arange(NSUNANGLE_VALS)


#: Angle grid the distributed LUTs were generated on
DEFAULT_ANGLE_GRID = AngleGrid()

# =============================================================================
# Satellite Band Catalogs
# =============================================================================

#: Landsat-8/9 LUT band labels (bands 1-7 plus pan band 8)
LANDSAT_BAND_LABELS: Tuple[str, ...] = ("1", "2", "3", "4", "5", "6", "7", "8")

#: Landsat-8/9 reflective band center wavelengths [um]
LANDSAT_WAVELENGTHS: Tuple[float, ...] = (
    0.443, 0.480, 0.585, 0.655, 0.865, 1.61, 2.2,
)

#: Sentinel-2 LUT band labels, in file order
SENTINEL_BAND_LABELS: Tuple[str, ...] = (
    "1", "2", "3", "4", "5", "6", "7", "8", "8a", "9", "10", "11", "12",
)

#: Sentinel-2 band center wavelengths [um], all 13 bands
SENTINEL_WAVELENGTHS: Tuple[float, ...] = (
    0.443, 0.490, 0.560, 0.665, 0.705, 0.740, 0.783, 0.842, 0.865, 0.945,
    1.375, 1.61, 2.19,
)

#: Sentinel-2 water vapor/cirrus bands (9 and 10) skipped by default;
#: indices are positions in SENTINEL_BAND_LABELS
SENTINEL_WATER_VAPOR_BANDS: FrozenSet[int] = frozenset({9, 10})


@dataclass(frozen=True)
class SatelliteFamily:
    """
    Capability record of a satellite family.

    Selected once per run and passed to the loader and the correction
    routines instead of branching on the satellite name.

    Attributes
    ----------
    name : str
        Family name.
    band_labels : tuple of str
        Band labels in LUT file order, including excluded bands.
    numbered_datasets : bool
        If True, intrinsic reflectance datasets are named by the 1-based
        band number, otherwise by the band label.
    excluded : frozenset of int
        File band indices that are consumed but not stored.
    wavelengths : tuple of float
        Center wavelengths [um] of the stored reflective bands.
    max_band_index : int
        Largest stored band index that receives the spectral AOT adjustment.
    """

    name: str
    band_labels: Tuple[str, ...]
    numbered_datasets: bool
    wavelengths: Tuple[float, ...]
    max_band_index: int
    excluded: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def nfile_bands(self) -> int:
        """Number of bands present in the LUT files."""
        return len(self.band_labels)

    @property
    def nbands(self) -> int:
        """Number of bands stored in the look-up tables."""
        return self.nfile_bands - len(self.excluded)

    def dataset_name(self, file_band: int) -> str:
        """Name of the intrinsic reflectance dataset of a file band."""
        if self.numbered_datasets:
            return f"NRLUT_BAND_{file_band + 1}"
        return f"NRLUT_BAND_{self.band_labels[file_band]}"

    def stored_bands(self):
        """
        Iterate over the file bands.

        Yields
        ------
        tuple
            ``(file_band, stored_band)``, where ``stored_band`` is None for
            excluded bands.
        """
        stored = 0
        for file_band in range(self.nfile_bands):
            if file_band in self.excluded:
                yield file_band, None
            else:
                yield file_band, stored
                stored += 1


LANDSAT = SatelliteFamily(
    name="landsat",
    band_labels=LANDSAT_BAND_LABELS,
    numbered_datasets=True,
    wavelengths=LANDSAT_WAVELENGTHS,
    max_band_index=len(LANDSAT_WAVELENGTHS) - 1,
)

SENTINEL2 = SatelliteFamily(
    name="sentinel-2",
    band_labels=SENTINEL_BAND_LABELS,
    numbered_datasets=False,
    wavelengths=tuple(
        wl for i, wl in enumerate(SENTINEL_WAVELENGTHS)
        if i not in SENTINEL_WATER_VAPOR_BANDS
    ),
    max_band_index=len(SENTINEL_WAVELENGTHS) - len(SENTINEL_WATER_VAPOR_BANDS) - 1,
    excluded=SENTINEL_WATER_VAPOR_BANDS,
)

SENTINEL2_ALL_BANDS = SatelliteFamily(
    name="sentinel-2",
    band_labels=SENTINEL_BAND_LABELS,
    numbered_datasets=False,
    wavelengths=SENTINEL_WAVELENGTHS,
    max_band_index=len(SENTINEL_WAVELENGTHS) - 1,
)

#: Satellite names accepted by :func:`get_satellite`
SATELLITES: Dict[str, Tuple[SatelliteFamily, SatelliteFamily]] = {
    # name: (default band set, all bands)
    "landsat-8": (LANDSAT, LANDSAT),
    "landsat-9": (LANDSAT, LANDSAT),
    "sentinel-2": (SENTINEL2, SENTINEL2_ALL_BANDS),
}


def get_satellite(name: str, process_all_bands: bool = False) -> SatelliteFamily:
    """
    Get the capability record for a satellite.

    Parameters
    ----------
    name : str
        Satellite name. One of 'landsat-8', 'landsat-9', 'sentinel-2'.
        Case and '_'/'-' separators are ignored.
    process_all_bands : bool, optional
        Keep the Sentinel-2 water vapor bands 9 and 10. Default is False.

    Returns
    -------
    SatelliteFamily
        Band catalog of the satellite family.

    Raises
    ------
    ValueError
        If the satellite is not recognized.
    """
    key = name.lower().replace("_", "-")
    if key not in SATELLITES:
        raise ValueError(
            f"Unknown satellite: {name}. "
            f"Supported: {', '.join(sorted(SATELLITES))}"
        )
    default, all_bands = SATELLITES[key]
    return all_bands if process_all_bands else default
