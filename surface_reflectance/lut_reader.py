"""
Loader for the surface reflectance look-up tables.

Four inputs make up a LUT set:

- Angle container: named 2-D tables TSMAX, TSMIN, TTV, NBFI, NBFIC, INDTS
  and TTS, all of shape [20, 22].
- Intrinsic reflectance container: one dataset ``NRLUT_BAND_<id>`` per band
  of shape [nsolar, 22 aot, 7 pressure].
- Transmission text stream: per band a header line, then per pressure level a
  header line and 21 lines of ``angle t(aot_0) ... t(aot_21)``.
- Spherical albedo text stream: per band a header line, then per pressure
  level a header line and 22 lines of ``aot sphalb normext``.

Containers are read with xarray; any engine able to open the files works
(h5netcdf for HDF5/netCDF4, netcdf4 builds with HDF4 support for the
original HDF4 distribution).

Every failure raises a :class:`~surface_reflectance.errors.LutError`
subclass and aborts the load.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional, Union

import numpy as np

from .constants import (
    DEFAULT_ANGLE_GRID,
    INDEX_TABLE_SHAPE,
    NAOT_VALS,
    NPRES_VALS,
    NSOLAR_VALS,
    NSOLAR_ZEN_VALS,
    NSUNANGLE_VALS,
    NVIEW_ZEN_VALS,
    TRANSMISSION_AXIS_TOLERANCE,
    AngleGrid,
    SatelliteFamily,
)
from .errors import LutFormatError, LutIntegrityError, LutReadError
from .tables import LookupTables

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

#: Angle tables of shape [NVIEW_ZEN_VALS, NSOLAR_ZEN_VALS]
ANGLE_DATASETS = ("TSMAX", "TSMIN", "TTV", "NBFI", "NBFIC")

#: Data lines per pressure level in the transmission stream
TRANSMISSION_LINES = NSUNANGLE_VALS - 1

#: Data lines per pressure level in the spherical albedo stream
SPHERICAL_ALBEDO_LINES = NAOT_VALS


@dataclass
class LutPaths:
    """
    Locations of the four LUT inputs.

    Attributes
    ----------
    angle : str or Path
        Angle table container.
    intrinsic : str or Path
        Intrinsic reflectance container.
    transmission : str or Path
        Transmission text file.
    spherical_albedo : str or Path
        Spherical albedo / extinction text file.
    """

    angle: PathLike
    intrinsic: PathLike
    transmission: PathLike
    spherical_albedo: PathLike


def _open_container(path: PathLike, engine: Optional[str]):
    import xarray as xr

    try:
        return xr.open_dataset(path, engine=engine, mask_and_scale=False)
    except (OSError, ValueError) as err:
        raise LutReadError(
            f"Unable to open {path}: {err}", path=str(path)
        ) from err


def _read_dataset(ds, name: str, path: PathLike, shape) -> np.ndarray:
    if name not in ds.variables:
        raise LutReadError(
            f"Unable to find {name} in {path}", path=str(path), dataset=name
        )
    data = np.asarray(ds[name].values)
    if data.shape != tuple(shape):
        raise LutFormatError(
            f"{name} in {path} has shape {data.shape}, expected {tuple(shape)}",
            path=str(path), dataset=name,
        )
    return data


def read_angle_tables(path: PathLike, tables: LookupTables,
                      engine: Optional[str] = None) -> None:
    """
    Read the angle tables into ``tables``.

    Parameters
    ----------
    path : str or Path
        Angle table container.
    tables : LookupTables
        Writable tables.
    engine : str, optional
        xarray backend engine.

    Raises
    ------
    LutReadError
        If the file cannot be opened or a dataset is missing.
    LutFormatError
        If a dataset has the wrong shape.
    """
    with _open_container(path, engine) as ds:
        for name in ANGLE_DATASETS:
            getattr(tables, name.lower())[...] = _read_dataset(
                ds, name, path, (NVIEW_ZEN_VALS, NSOLAR_ZEN_VALS))
        tables.indts[...] = _read_dataset(ds, "INDTS", path, INDEX_TABLE_SHAPE)
        tables.tts_table[...] = _read_dataset(ds, "TTS", path, INDEX_TABLE_SHAPE)
    logger.info("Read angle tables from %s", path)


def read_intrinsic_reflectance(path: PathLike, tables: LookupTables,
                               engine: Optional[str] = None) -> None:
    """
    Read the per-band intrinsic reflectance datasets into ``tables.rolutt``.

    Each dataset is stored as [nsolar, aot, pressure] and transposed to the
    canonical [pressure, aot, nsolar] layout. Excluded bands are skipped.

    Raises
    ------
    LutReadError
        If the file cannot be opened or a band dataset is missing.
    LutFormatError
        If a band dataset has the wrong shape.
    """
    satellite = tables.satellite
    shape = (tables.nsolar, NAOT_VALS, NPRES_VALS)
    with _open_container(path, engine) as ds:
        for file_band, iband in satellite.stored_bands():
            name = satellite.dataset_name(file_band)
            if iband is None:
                logger.debug("Skipping %s", name)
                continue
            data = _read_dataset(ds, name, path, shape)
            tables.rolutt[iband] = np.transpose(data, (2, 1, 0))
    logger.info("Read intrinsic reflectance from %s", path)


class _TextStream:
    """Whitespace separated numeric text, read line by line."""

    def __init__(self, fileobj, path: PathLike):
        self._lines: Iterator[str] = iter(fileobj)
        self.path = str(path)
        self.lineno = 0

    def next_line(self) -> str:
        try:
            line = next(self._lines)
        except StopIteration:
            raise LutReadError(
                f"Unexpected end of file at line {self.lineno + 1} of "
                f"{self.path}", path=self.path,
            ) from None
        self.lineno += 1
        return line

    def skip(self, count: int) -> None:
        for _ in range(count):
            self.next_line()

    def next_values(self, count: int) -> List[float]:
        line = self.next_line()
        try:
            values = [float(v) for v in line.split()]
        except ValueError as err:
            raise LutFormatError(
                f"Invalid value at line {self.lineno} of {self.path}: {err}",
                path=self.path,
            ) from err
        if len(values) != count:
            raise LutFormatError(
                f"Expected {count} values at line {self.lineno} of "
                f"{self.path}, found {len(values)}", path=self.path,
            )
        return values


def read_transmission(path: PathLike, tables: LookupTables) -> None:
    """
    Read the transmission stream into ``tables.transt``.

    The angle column of every data line is checked against the sun angle
    axis derived from the angle grid. The last sun angle column is not
    present in the stream and stays zero.

    Raises
    ------
    LutReadError
        If the file cannot be opened or ends early.
    LutFormatError
        If a line cannot be parsed.
    LutIntegrityError
        If an angle differs from the derived axis by more than 1e-5.
    """
    tts = tables.tts
    lines_per_band = 1 + NPRES_VALS * (1 + TRANSMISSION_LINES)
    try:
        fileobj = open(path, "r")
    except OSError as err:
        raise LutReadError(
            f"Unable to open {path}: {err}", path=str(path)) from err

    with fileobj:
        stream = _TextStream(fileobj, path)
        for file_band, iband in tables.satellite.stored_bands():
            if iband is None:
                logger.debug("Skipping transmission of file band %d", file_band)
                stream.skip(lines_per_band)
                continue
            stream.skip(1)
            for ip in range(NPRES_VALS):
                stream.skip(1)
                for i in range(TRANSMISSION_LINES):
                    values = stream.next_values(1 + NAOT_VALS)
                    if abs(values[0] - tts[i]) > TRANSMISSION_AXIS_TOLERANCE:
                        raise LutIntegrityError(
                            f"Problem with transmission sun angle at line "
                            f"{stream.lineno} of {path}: {values[0]} != "
                            f"{tts[i]}", path=str(path),
                        )
                    tables.transt[iband, ip, :, i] = values[1:]
    logger.info("Read transmission from %s", path)


def read_spherical_albedo(path: PathLike, tables: LookupTables) -> None:
    """
    Read the spherical albedo stream into ``tables.sphalbt`` and
    ``tables.normext``. The AOT column is ignored.

    Raises
    ------
    LutReadError
        If the file cannot be opened or ends early.
    LutFormatError
        If a line cannot be parsed.
    """
    lines_per_band = 1 + NPRES_VALS * (1 + SPHERICAL_ALBEDO_LINES)
    try:
        fileobj = open(path, "r")
    except OSError as err:
        raise LutReadError(
            f"Unable to open {path}: {err}", path=str(path)) from err

    with fileobj:
        stream = _TextStream(fileobj, path)
        for file_band, iband in tables.satellite.stored_bands():
            if iband is None:
                logger.debug("Skipping spherical albedo of file band %d",
                             file_band)
                stream.skip(lines_per_band)
                continue
            stream.skip(1)
            for ip in range(NPRES_VALS):
                stream.skip(1)
                for iaot in range(SPHERICAL_ALBEDO_LINES):
                    _, sphalb, normext = stream.next_values(3)
                    tables.sphalbt[iband, ip, iaot] = sphalb
                    tables.normext[iband, ip, iaot] = normext
    logger.info("Read spherical albedo from %s", path)


def read_luts(satellite: SatelliteFamily, paths: LutPaths,
              grid: Optional[AngleGrid] = None,
              nsolar: int = NSOLAR_VALS,
              engine: Optional[str] = None) -> LookupTables:
    """
    Load a complete LUT set.

    Parameters
    ----------
    satellite : SatelliteFamily
        Band catalog, including the band exclusion policy.
    paths : LutPaths
        Locations of the four inputs.
    grid : AngleGrid, optional
        Angle grid of the tables. Defaults to the distributed grid.
    nsolar : int, optional
        Length of the flattened scattering-angle axis. Default 8000.
    engine : str, optional
        xarray backend engine for the two containers.

    Returns
    -------
    LookupTables
        Read-only tables.

    Raises
    ------
    LutError
        On any allocation, open, read or format failure.

    Examples
    --------
    >>> sat = get_satellite('landsat-8')  # doctest: +SKIP
    >>> luts = read_luts(sat, LutPaths('anglehdf', 'intrefnm',  # doctest: +SKIP
    ...                                'transmnm', 'spheranm'))
    """
    grid = grid or DEFAULT_ANGLE_GRID
    tables = LookupTables.allocate(satellite, grid=grid, nsolar=nsolar)
    read_angle_tables(paths.angle, tables, engine=engine)
    read_intrinsic_reflectance(paths.intrinsic, tables, engine=engine)
    read_transmission(paths.transmission, tables)
    read_spherical_albedo(paths.spherical_albedo, tables)
    logger.info("Loaded %d bands of %s look-up tables",
                tables.nbands, satellite.name)
    return tables.freeze()
