"""
Lambertian Surface Reflectance Correction
=========================================

Inverts top-of-atmosphere (TOA) reflectance to Lambertian surface
reflectance with the radiative-transfer look-up tables.

Two entry points are provided:

- The full table-driven path interpolates intrinsic reflectance,
  transmission and spherical albedo from the tables for every pixel and
  applies the gaseous and molecular corrections.
- The coefficient-driven fast path evaluates cubic fits of intrinsic
  reflectance, transmission and spherical albedo in AOT, prepared once per
  band and geometry with :func:`fit_coefficients`.

Both invert

.. math::

    \\rho_s = \\frac{\\rho_{TOA} / t_g - \\rho_{atm}}
                   {T + S (\\rho_{TOA} / t_g - \\rho_{atm})}

The correction is stateless apart from the read-only tables, so a scene
can be corrected by blocks of lines in parallel threads.

References
----------
.. [1] Vermote, E., Justice, C., Claverie, M., and Franch, B. (2016).
       Preliminary analysis of the performance of the Landsat 8/OLI land
       surface reflectance product. Remote Sensing of Environment,
       185:46-56.
.. [2] Doxani, G., et al. (2018). Atmospheric Correction Inter-Comparison
       Exercise. Remote Sensing, 10(2):352.
"""

import concurrent.futures
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Union

import numpy as np

from . import gases
from . import interpolation
from . import rayleigh
from .constants import (
    AOT_TABLE,
    LAMBDA_SCALE,
    NAOT_VALS,
    NCOEF,
    NORMEXT_REFERENCE_AOT_INDEX,
    NSOLAR_VALS,
    ONE_DIV_ATMOS_PRES_0,
    AngleGrid,
    SatelliteFamily,
    get_satellite,
)
from .geometry import ViewGeometry, locate, solar_angle_bin, view_angle_bin
from .lut_reader import LutPaths, read_luts
from .tables import LookupTables

logger = logging.getLogger(__name__)

ArrayLike = Union[float, np.ndarray]

#: Minimum increase of intrinsic reflectance between AOT nodes kept in a fit
MIN_ROATM_INCREASE = 1.0e-6


@dataclass
class AncillaryData:
    """
    Atmospheric state of a pixel or an array of pixels.

    Attributes
    ----------
    pressure : float or ndarray
        Surface pressure [mb]. Default is 1013.
    ozone : float or ndarray
        Total column ozone [cm-atm]. Default is 0.3.
    water_vapor : float or ndarray
        Total column water vapor [g/cm²]. Default is 1.5.
    """

    pressure: ArrayLike = 1013.0
    ozone: ArrayLike = 0.3
    water_vapor: ArrayLike = 1.5


@dataclass
class CoefficientFit:
    """
    Cubic fits in AOT used by the coefficient-driven fast path.

    Coefficients are ordered from the cubic term down to the constant,
    as returned by :func:`numpy.polyfit`.

    Attributes
    ----------
    roatm_coef : ndarray
        Intrinsic reflectance coefficients.
    ttatmg_coef : ndarray
        Total transmission coefficients.
    satm_coef : ndarray
        Spherical albedo coefficients.
    roatm_upper : float
        Largest AOT for which the fits are valid.
    tgo : float
        Ozone and other gases transmittance at the fitted geometry.
    normext_ref : float
        Extinction reference of the band used for AOT adjustment.
    """

    roatm_coef: np.ndarray
    ttatmg_coef: np.ndarray
    satm_coef: np.ndarray
    roatm_upper: float
    tgo: float
    normext_ref: float


@dataclass
class CorrectionResult:
    """
    Results of a correction call.

    Attributes
    ----------
    roslamb : float or ndarray
        Lambertian surface reflectance.
    tgo : float or ndarray
        Ozone and other gases transmittance.
    roatm : float or ndarray
        Intrinsic atmospheric reflectance.
    ttatmg : float or ndarray
        Total atmospheric transmission, including water vapor.
    satm : float or ndarray
        Spherical albedo.
    mraot550nm : float or ndarray
        AOT after spectral adjustment.
    xrorayp : float or ndarray, optional
        Molecular reflectance. None on the fast path.
    """

    roslamb: ArrayLike
    tgo: ArrayLike
    roatm: ArrayLike
    ttatmg: ArrayLike
    satm: ArrayLike
    mraot550nm: ArrayLike
    xrorayp: Optional[ArrayLike] = None


def _value(x):
    """Return a float for 0-d results."""
    return float(x) if np.ndim(x) == 0 else x


def modified_aot(
    raot550nm: ArrayLike,
    eps: ArrayLike,
    iband: int,
    satellite: SatelliteFamily,
    normext_ref: float,
) -> np.ndarray:
    """
    Spectrally adjust the AOT at 550 nm for a band.

    Parameters
    ----------
    raot550nm : float or array_like
        AOT at 550 nm.
    eps : float or array_like
        Angstrom exponent; negative values disable the adjustment.
    iband : int
        Stored band index.
    satellite : SatelliteFamily
        Band catalog.
    normext_ref : float
        Extinction reference of the band.

    Returns
    -------
    ndarray
        ``(raot550nm / normext_ref) * (lambda / 0.55) ** -eps``, or
        ``raot550nm`` unchanged when ``eps < 0`` or the band is outside
        the core reflective range.
    """
    raot550nm = np.asarray(raot550nm, dtype=np.float64)
    if iband > satellite.max_band_index:
        return raot550nm
    eps = np.asarray(eps, dtype=np.float64)
    ratio = satellite.wavelengths[iband] * LAMBDA_SCALE
    with np.errstate(divide="ignore", invalid="ignore"):
        adjusted = (raot550nm / normext_ref) * np.power(ratio, -eps)
    return np.where(eps < 0.0, raot550nm, adjusted)


def _cubic(coef: np.ndarray, x: np.ndarray) -> np.ndarray:
    x2 = x * x
    return coef[3] + coef[2] * x + coef[1] * x2 + coef[0] * x2 * x


def correct_from_coefficients(
    satellite: SatelliteFamily,
    iband: int,
    tgo: ArrayLike,
    roatm_coef: Sequence[float],
    ttatmg_coef: Sequence[float],
    satm_coef: Sequence[float],
    raot550nm: ArrayLike,
    normext_ref: float,
    eps: ArrayLike,
    rotoa: ArrayLike,
    roatm_upper: float,
) -> CorrectionResult:
    """
    Correct TOA reflectance with precomputed cubic fits.

    Parameters
    ----------
    satellite : SatelliteFamily
        Band catalog.
    iband : int
        Stored band index.
    tgo : float or array_like
        Ozone and other gases transmittance.
    roatm_coef, ttatmg_coef, satm_coef : sequence of float
        Cubic coefficients, cubic term first.
    raot550nm : float or array_like
        AOT at 550 nm.
    normext_ref : float
        Extinction reference of the band.
    eps : float or array_like
        Angstrom exponent.
    rotoa : float or array_like
        TOA reflectance.
    roatm_upper : float
        Largest valid AOT of the fits; larger adjusted AOT is clamped.

    Returns
    -------
    CorrectionResult
        Surface reflectance and the atmospheric terms used.
    """
    roatm_coef = np.asarray(roatm_coef, dtype=np.float64)
    ttatmg_coef = np.asarray(ttatmg_coef, dtype=np.float64)
    satm_coef = np.asarray(satm_coef, dtype=np.float64)
    for coef in (roatm_coef, ttatmg_coef, satm_coef):
        if coef.shape != (NCOEF,):
            raise ValueError(f"Expected {NCOEF} coefficients, got {coef.shape}")

    mraot550nm = modified_aot(raot550nm, eps, iband, satellite, normext_ref)
    mraot550nm = np.where(mraot550nm >= roatm_upper, roatm_upper, mraot550nm)

    roatm = _cubic(roatm_coef, mraot550nm)
    ttatmg = _cubic(ttatmg_coef, mraot550nm)
    satm = _cubic(satm_coef, mraot550nm)

    roslamb = np.asarray(rotoa) - tgo * roatm
    roslamb = roslamb / (tgo * ttatmg + satm * roslamb)

    return CorrectionResult(
        roslamb=_value(roslamb),
        tgo=_value(np.asarray(tgo)),
        roatm=_value(roatm),
        ttatmg=_value(ttatmg),
        satm=_value(satm),
        mraot550nm=_value(mraot550nm),
    )


def correct_with_tables(
    tables: LookupTables,
    coefs: gases.TransmissionCoefficients,
    iband: int,
    geometry: ViewGeometry,
    ancillary: AncillaryData,
    raot550nm: ArrayLike,
    eps: ArrayLike,
    rotoa: ArrayLike,
) -> CorrectionResult:
    """
    Correct TOA reflectance by interpolating the look-up tables.

    Parameters
    ----------
    tables : LookupTables
        Loaded tables.
    coefs : TransmissionCoefficients
        Per-band gaseous and Rayleigh coefficients.
    iband : int
        Stored band index.
    geometry : ViewGeometry
        Sun/view geometry.
    ancillary : AncillaryData
        Surface pressure, ozone and water vapor.
    raot550nm : float or array_like
        AOT at 550 nm.
    eps : float or array_like
        Angstrom exponent; negative values disable the AOT adjustment.
    rotoa : float or array_like
        TOA reflectance.

    Returns
    -------
    CorrectionResult
        Surface reflectance and the atmospheric terms used.

    Raises
    ------
    ZenithAngleError
        If a zenith angle falls outside the tables.

    Notes
    -----
    The water vapor correction of the path reflectance uses half the
    column content and applies to the aerosol part only:
    ``roatm = (roatm - rayleigh) * tgwvhalf + rayleigh``.
    """
    grid = tables.grid
    satellite = tables.satellite
    pres = np.asarray(ancillary.pressure, dtype=np.float64)
    xts = np.asarray(geometry.solar_zenith, dtype=np.float64)
    xtv = np.asarray(geometry.view_zenith, dtype=np.float64)
    xmus = geometry.xmus
    xmuv = geometry.xmuv

    normext_ref = tables.normext[iband, 0, NORMEXT_REFERENCE_AOT_INDEX]
    mraot550nm = modified_aot(raot550nm, eps, iband, satellite, normext_ref)

    brackets = locate(pres, mraot550nm)
    itv = view_angle_bin(xtv, grid)
    its = solar_angle_bin(xts, grid.xts_min, grid.xts_step)

    roatm = interpolation.intrinsic_reflectance(
        tables, iband, brackets, xts, xtv, xmus, xmuv, geometry.cosxfi,
        its, itv)
    xtts = interpolation.transmission(
        tables, iband, brackets, xts, grid.xts_min, grid.xts_step)
    xttv = interpolation.transmission(
        tables, iband, brackets, xtv, grid.xtv_min, grid.xtv_step)
    satm = interpolation.spherical_albedo(tables, iband, brackets)

    atm_pres = pres * ONE_DIV_ATMOS_PRES_0
    tg = gases.gas_transmittance(
        coefs, iband, xmus, xmuv, ancillary.ozone, ancillary.water_vapor,
        atm_pres)

    xtaur = rayleigh.rayleigh_optical_depth(coefs.tauray[iband], pres)
    xrorayp = rayleigh.molecular_reflectance(
        geometry.relative_azimuth, xmuv, xmus, xtaur)

    tgo = tg.tgo
    roatm = (roatm - xrorayp) * tg.water_vapor_half + xrorayp
    ttatmg = xtts * xttv * tg.water_vapor
    roslamb = np.asarray(rotoa) / tgo - roatm
    roslamb = roslamb / (ttatmg + satm * roslamb)

    return CorrectionResult(
        roslamb=_value(roslamb),
        tgo=_value(tgo),
        roatm=_value(roatm),
        ttatmg=_value(ttatmg),
        satm=_value(satm),
        mraot550nm=_value(mraot550nm),
        xrorayp=_value(xrorayp),
    )


def fit_coefficients(
    tables: LookupTables,
    coefs: gases.TransmissionCoefficients,
    iband: int,
    geometry: ViewGeometry,
    ancillary: AncillaryData,
) -> CoefficientFit:
    """
    Fit intrinsic reflectance, transmission and spherical albedo in AOT.

    The table-driven path is evaluated at every AOT table node for a single
    geometry and atmospheric state, with the AOT adjustment disabled. The
    fits use the nodes up to the last one where intrinsic reflectance still
    increases, and at least four nodes.

    Parameters
    ----------
    tables : LookupTables
        Loaded tables.
    coefs : TransmissionCoefficients
        Per-band gaseous and Rayleigh coefficients.
    iband : int
        Stored band index.
    geometry : ViewGeometry
        Scalar sun/view geometry.
    ancillary : AncillaryData
        Scalar surface pressure, ozone and water vapor.

    Returns
    -------
    CoefficientFit
        Inputs of :func:`correct_from_coefficients`.
    """
    for value in (geometry.solar_zenith, geometry.view_zenith,
                  geometry.relative_azimuth, ancillary.pressure,
                  ancillary.ozone, ancillary.water_vapor):
        if np.ndim(value) != 0:
            raise ValueError("fit_coefficients needs a scalar geometry and "
                             "atmospheric state")

    nodes = correct_with_tables(
        tables, coefs, iband, geometry, ancillary, AOT_TABLE, -1.0, 0.0)
    roatm = np.asarray(nodes.roatm)
    ttatmg = np.asarray(nodes.ttatmg)
    satm = np.asarray(nodes.satm)

    iamax = NAOT_VALS - 1
    for iaot in range(1, NAOT_VALS):
        if roatm[iaot] - roatm[iaot - 1] <= MIN_ROATM_INCREASE:
            iamax = iaot - 1
            break
    npts = max(iamax + 1, NCOEF)

    x = AOT_TABLE[:npts]
    fit = CoefficientFit(
        roatm_coef=np.polyfit(x, roatm[:npts], NCOEF - 1),
        ttatmg_coef=np.polyfit(x, ttatmg[:npts], NCOEF - 1),
        satm_coef=np.polyfit(x, satm[:npts], NCOEF - 1),
        roatm_upper=float(AOT_TABLE[iamax]),
        tgo=float(nodes.tgo),
        normext_ref=float(
            tables.normext[iband, 0, NORMEXT_REFERENCE_AOT_INDEX]),
    )
    logger.debug("Band %d fitted over %d AOT nodes, upper AOT %.2f",
                 iband, npts, fit.roatm_upper)
    return fit


def _rows(value, start: int, stop: int):
    """Slice per-pixel 2-D inputs; scalars apply to every line."""
    if np.ndim(value) >= 2:
        return value[start:stop]
    return value


class SurfaceReflectanceCorrection:
    """
    Surface reflectance processor for one satellite family.

    Parameters
    ----------
    satellite : str or SatelliteFamily
        Satellite name ('landsat-8', 'landsat-9', 'sentinel-2') or band
        catalog. Must match the catalog the tables were loaded for.
    tables : LookupTables
        Loaded, read-only look-up tables.
    coefficients : TransmissionCoefficients
        Per-band gaseous and Rayleigh coefficients.
    max_workers : int, optional
        Worker threads of :meth:`correct_scene`. Default lets
        :class:`concurrent.futures.ThreadPoolExecutor` decide.
    block_lines : int, optional
        Lines per block of :meth:`correct_scene`. Default is 256.

    Examples
    --------
    >>> from surface_reflectance import SurfaceReflectanceCorrection, LutPaths  # doctest: +SKIP
    >>> sr = SurfaceReflectanceCorrection.from_files(  # doctest: +SKIP
    ...     'landsat-8', LutPaths(angle, intrinsic, transmission, sphalb),
    ...     coefficients)
    >>> result = sr.correct(3, geometry, ancillary, aot=0.1, eps=1.5,  # doctest: +SKIP
    ...                     rotoa=0.12)
    >>> print(result.roslamb)  # doctest: +SKIP
    """

    def __init__(
        self,
        satellite: Union[str, SatelliteFamily],
        tables: LookupTables,
        coefficients: gases.TransmissionCoefficients,
        max_workers: Optional[int] = None,
        block_lines: int = 256,
    ):
        if isinstance(satellite, str):
            satellite = get_satellite(satellite)
        if satellite != tables.satellite:
            raise ValueError(
                f"Tables were loaded for {tables.satellite.name} with "
                f"{tables.nbands} bands, not {satellite.name} with "
                f"{satellite.nbands} bands"
            )
        if coefficients.nbands != tables.nbands:
            raise ValueError(
                f"Expected transmission coefficients for {tables.nbands} "
                f"bands, got {coefficients.nbands}"
            )
        if block_lines < 1:
            raise ValueError("block_lines must be positive")

        self.satellite = satellite
        self.tables = tables
        self.coefficients = coefficients
        self.max_workers = max_workers
        self.block_lines = block_lines

    @classmethod
    def from_files(
        cls,
        satellite: str,
        paths: LutPaths,
        coefficients: gases.TransmissionCoefficients,
        process_all_bands: bool = False,
        grid: Optional[AngleGrid] = None,
        nsolar: int = NSOLAR_VALS,
        engine: Optional[str] = None,
        **kwargs,
    ) -> "SurfaceReflectanceCorrection":
        """Load the look-up tables and build a processor."""
        family = get_satellite(satellite, process_all_bands=process_all_bands)
        tables = read_luts(family, paths, grid=grid, nsolar=nsolar,
                           engine=engine)
        return cls(family, tables, coefficients, **kwargs)

    @property
    def wavelengths(self) -> np.ndarray:
        """Center wavelengths of the reflective bands [um]."""
        return np.array(self.satellite.wavelengths)

    def _check_band(self, iband: int) -> None:
        if not 0 <= iband < self.tables.nbands:
            raise IndexError(
                f"Band index {iband} out of range for {self.tables.nbands} "
                f"bands"
            )

    def correct(
        self,
        iband: int,
        geometry: ViewGeometry,
        ancillary: AncillaryData,
        aot: ArrayLike,
        eps: ArrayLike,
        rotoa: ArrayLike,
    ) -> CorrectionResult:
        """
        Correct TOA reflectance of a band with the full table-driven path.

        See :func:`correct_with_tables`.
        """
        self._check_band(iband)
        return correct_with_tables(
            self.tables, self.coefficients, iband, geometry, ancillary,
            aot, eps, rotoa)

    def fit(
        self,
        iband: int,
        geometry: ViewGeometry,
        ancillary: AncillaryData,
    ) -> CoefficientFit:
        """Fit the fast-path coefficients of a band. See :func:`fit_coefficients`."""
        self._check_band(iband)
        return fit_coefficients(
            self.tables, self.coefficients, iband, geometry, ancillary)

    def correct_fast(
        self,
        iband: int,
        fit: CoefficientFit,
        aot: ArrayLike,
        eps: ArrayLike,
        rotoa: ArrayLike,
    ) -> CorrectionResult:
        """
        Correct TOA reflectance of a band with fitted coefficients.

        See :func:`correct_from_coefficients`.
        """
        self._check_band(iband)
        return correct_from_coefficients(
            self.satellite, iband, fit.tgo, fit.roatm_coef, fit.ttatmg_coef,
            fit.satm_coef, aot, fit.normext_ref, eps, rotoa, fit.roatm_upper)

    def correct_scene(
        self,
        iband: int,
        rotoa: np.ndarray,
        geometry: ViewGeometry,
        ancillary: AncillaryData,
        aot: ArrayLike,
        eps: ArrayLike,
    ) -> np.ndarray:
        """
        Correct a 2-D band by blocks of lines in worker threads.

        Geometry, ancillary, AOT and eps values may be scalars or arrays of
        the band's shape.

        Parameters
        ----------
        iband : int
            Stored band index.
        rotoa : ndarray
            TOA reflectance, shape (lines, samples).
        geometry : ViewGeometry
            Sun/view geometry.
        ancillary : AncillaryData
            Atmospheric state.
        aot : float or ndarray
            AOT at 550 nm.
        eps : float or ndarray
            Angstrom exponent.

        Returns
        -------
        ndarray
            Surface reflectance, same shape as ``rotoa``.

        Raises
        ------
        ZenithAngleError
            If any pixel's geometry falls outside the tables; the scene is
            not partially corrected.
        """
        self._check_band(iband)
        rotoa = np.asarray(rotoa)
        if rotoa.ndim != 2:
            raise ValueError(f"Expected a 2-D band, got shape {rotoa.shape}")
        nlines = rotoa.shape[0]
        starts = range(0, nlines, self.block_lines)

        def run(start):
            stop = min(start + self.block_lines, nlines)
            block_geometry = ViewGeometry(
                solar_zenith=_rows(geometry.solar_zenith, start, stop),
                view_zenith=_rows(geometry.view_zenith, start, stop),
                relative_azimuth=_rows(geometry.relative_azimuth, start, stop),
            )
            block_ancillary = AncillaryData(
                pressure=_rows(ancillary.pressure, start, stop),
                ozone=_rows(ancillary.ozone, start, stop),
                water_vapor=_rows(ancillary.water_vapor, start, stop),
            )
            result = self.correct(
                iband, block_geometry, block_ancillary,
                _rows(aot, start, stop), _rows(eps, start, stop),
                rotoa[start:stop])
            return np.broadcast_to(result.roslamb, (stop - start,) + rotoa.shape[1:])

        logger.debug("Correcting band %d, %d lines in blocks of %d",
                     iband, nlines, self.block_lines)
        with concurrent.futures.ThreadPoolExecutor(
                max_workers=self.max_workers) as executor:
            blocks = list(executor.map(run, starts))
        return np.concatenate(blocks, axis=0)

    def correct_bands(
        self,
        rotoa: Dict[int, np.ndarray],
        geometry: ViewGeometry,
        ancillary: AncillaryData,
        aot: ArrayLike,
        eps: ArrayLike,
    ) -> Dict[int, np.ndarray]:
        """
        Correct several 2-D bands of a scene.

        Parameters
        ----------
        rotoa : dict
            TOA reflectance by stored band index.

        Returns
        -------
        dict
            Surface reflectance by stored band index.
        """
        return {
            iband: self.correct_scene(iband, band, geometry, ancillary, aot, eps)
            for iband, band in rotoa.items()
        }
