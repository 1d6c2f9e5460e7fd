"""
Storage model of the radiative-transfer look-up tables.

The tables are allocated once from their known extents, filled by the
loader (see :mod:`surface_reflectance.lut_reader`) and frozen read-only
before any correction call. Axis order is the canonical one:

- ``rolutt``   [band, pressure, aot, scattering sample]
- ``transt``   [band, pressure, aot, sun angle]
- ``sphalbt``  [band, pressure, aot]
- ``normext``  [band, pressure, aot]
- angle tables [view zenith bin, solar zenith bin]

The interpolation routines address the 4-D tables through flat row-major
views, so the scattering sample (the most frequently re-indexed axis) is
innermost.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from .constants import (
    AOT_TABLE,
    DEFAULT_ANGLE_GRID,
    INDEX_TABLE_SHAPE,
    NAOT_VALS,
    NPRES_VALS,
    NSOLAR_VALS,
    NSOLAR_ZEN_VALS,
    NSUNANGLE_VALS,
    NVIEW_ZEN_VALS,
    PRESSURE_TABLE,
    AngleGrid,
    SatelliteFamily,
)
from .errors import LutAllocationError

logger = logging.getLogger(__name__)

#: Table arrays, in allocation order
ARRAY_NAMES = (
    "tsmax", "tsmin", "ttv", "nbfi", "nbfic", "indts", "tts_table",
    "rolutt", "transt", "sphalbt", "normext",
)


def _allocate(name: str, shape, dtype=np.float32) -> np.ndarray:
    try:
        array = np.zeros(shape, dtype=dtype)
    except MemoryError as err:
        raise LutAllocationError(name) from err
    logger.debug("Allocated %s %s (%d bytes)", name, shape, array.nbytes)
    return array


@dataclass
class LookupTables:
    """
    Look-up tables of one satellite family.

    Attributes
    ----------
    satellite : SatelliteFamily
        Band catalog the tables were loaded for.
    grid : AngleGrid
        Solar/view zenith sampling of the angle tables.
    nsolar : int
        Length of the flattened scattering-angle axis of ``rolutt``.
    tsmax, tsmin : np.ndarray
        Maximum and minimum scattering angle of each angle cell [degrees].
    ttv : np.ndarray
        View zenith angle of each angle cell [degrees].
    nbfi : np.ndarray
        Number of scattering samples of each angle cell.
    nbfic : np.ndarray
        Cumulative number of scattering samples along the view axis.
    indts : np.ndarray
        Cumulative offset table into the scattering axis; only its first
        row (flat indices 0-21) is addressed.
    tts_table : np.ndarray
        TTS table as stored in the angle container.
    rolutt : np.ndarray
        Intrinsic reflectance of the atmosphere.
    transt : np.ndarray
        Total (diffuse + direct) one-way transmission.
    sphalbt : np.ndarray
        Spherical albedo of the atmosphere.
    normext : np.ndarray
        Aerosol extinction normalized at 550 nm.
    """

    satellite: SatelliteFamily
    grid: AngleGrid
    nsolar: int
    tsmax: np.ndarray = field(repr=False)
    tsmin: np.ndarray = field(repr=False)
    ttv: np.ndarray = field(repr=False)
    nbfi: np.ndarray = field(repr=False)
    nbfic: np.ndarray = field(repr=False)
    indts: np.ndarray = field(repr=False)
    tts_table: np.ndarray = field(repr=False)
    rolutt: np.ndarray = field(repr=False)
    transt: np.ndarray = field(repr=False)
    sphalbt: np.ndarray = field(repr=False)
    normext: np.ndarray = field(repr=False)

    @classmethod
    def allocate(cls, satellite: SatelliteFamily,
                 grid: AngleGrid = DEFAULT_ANGLE_GRID,
                 nsolar: int = NSOLAR_VALS) -> "LookupTables":
        """
        Allocate zero-filled tables for a satellite family.

        Parameters
        ----------
        satellite : SatelliteFamily
            Band catalog; sets the band extent of the per-band tables.
        grid : AngleGrid, optional
            Angle grid of the tables.
        nsolar : int, optional
            Length of the flattened scattering-angle axis. Default 8000.

        Returns
        -------
        LookupTables
            Writable tables ready for the loader.

        Raises
        ------
        LutAllocationError
            If any buffer cannot be allocated.
        """
        nbands = satellite.nbands
        angle_shape = (NVIEW_ZEN_VALS, NSOLAR_ZEN_VALS)
        return cls(
            satellite=satellite,
            grid=grid,
            nsolar=nsolar,
            tsmax=_allocate("tsmax", angle_shape),
            tsmin=_allocate("tsmin", angle_shape),
            ttv=_allocate("ttv", angle_shape),
            nbfi=_allocate("nbfi", angle_shape),
            nbfic=_allocate("nbfic", angle_shape),
            indts=_allocate("indts", INDEX_TABLE_SHAPE, np.int32),
            tts_table=_allocate("tts_table", INDEX_TABLE_SHAPE),
            rolutt=_allocate(
                "rolutt", (nbands, NPRES_VALS, NAOT_VALS, nsolar)),
            transt=_allocate(
                "transt", (nbands, NPRES_VALS, NAOT_VALS, NSUNANGLE_VALS)),
            sphalbt=_allocate("sphalbt", (nbands, NPRES_VALS, NAOT_VALS)),
            normext=_allocate("normext", (nbands, NPRES_VALS, NAOT_VALS)),
        )

    @property
    def nbands(self) -> int:
        """Number of stored bands."""
        return self.rolutt.shape[0]

    @property
    def tts(self) -> np.ndarray:
        """Sun angle axis of the transmission table [degrees]."""
        return self.grid.sun_angles

    def arrays(self) -> Dict[str, np.ndarray]:
        """Table arrays by name."""
        return {name: getattr(self, name) for name in ARRAY_NAMES}

    def freeze(self) -> "LookupTables":
        """
        Mark every table read-only.

        Called once loading completes; after this the tables can be shared
        between worker threads without locking.
        """
        for array in self.arrays().values():
            array.flags.writeable = False
        return self

    @property
    def frozen(self) -> bool:
        """True once every table is read-only."""
        return not any(a.flags.writeable for a in self.arrays().values())

    def as_dataset(self):
        """
        Export the tables as an xarray Dataset with named axes.

        Returns
        -------
        xarray.Dataset
            Per-band tables on (band, pressure, aot, ...) and the angle
            tables on (view_zenith_bin, solar_zenith_bin).
        """
        import xarray as xr

        band_labels = [
            self.satellite.band_labels[file_band]
            for file_band, stored in self.satellite.stored_bands()
            if stored is not None
        ]
        per_band = ("band", "pressure", "aot")
        angle_dims = ("view_zenith_bin", "solar_zenith_bin")
        data_vars = {
            "rolutt": (per_band + ("scattering_sample",), self.rolutt),
            "transt": (per_band + ("sun_angle",), self.transt),
            "sphalbt": (per_band, self.sphalbt),
            "normext": (per_band, self.normext),
        }
        for name in ("tsmax", "tsmin", "ttv", "nbfi", "nbfic"):
            data_vars[name] = (angle_dims, getattr(self, name))
        data_vars["indts"] = (angle_dims, self.indts)
        return xr.Dataset(
            data_vars,
            coords={
                "band": band_labels,
                "pressure": PRESSURE_TABLE,
                "aot": AOT_TABLE,
                "sun_angle": self.tts,
            },
            attrs={"satellite": self.satellite.name},
        )
