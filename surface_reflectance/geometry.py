"""
Geometry Indexers
=================

Locates a pixel's pressure, aerosol optical thickness and sun/view zenith
angles within the look-up table grids, and derives the geometric quantities
the interpolation needs.

- Pressure and AOT brackets (``ip1``/``ip2``, ``iaot1``/``iaot2``) with the
  interpolation fractions shared by every table interpolation of a pixel
- View and solar zenith angle bins of the angle tables
- Scattering angle from the sun/view geometry

All functions accept scalars or numpy arrays of pixel values.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

import numpy as np

from .constants import (
    AOT_SCAN_LIMIT,
    AOT_TABLE,
    DEFAULT_ANGLE_GRID,
    LOG_AOT_TABLE,
    MAX_SOLAR_BIN,
    NVIEW_ZEN_VALS,
    PRESSURE_TABLE,
    AngleGrid,
)
from .errors import ZenithAngleError

ArrayLike = Union[float, np.ndarray]


@dataclass
class ViewGeometry:
    """
    Sun and view geometry of a pixel or an array of pixels.

    All angles are in degrees.

    Attributes
    ----------
    solar_zenith : float or ndarray
        Solar zenith angle [degrees].
    view_zenith : float or ndarray
        View zenith angle [degrees].
    relative_azimuth : float or ndarray, optional
        Azimuthal difference between sun and view directions [degrees].
        Computed from solar_azimuth and view_azimuth if not provided.
    solar_azimuth : float or ndarray, optional
        Solar azimuth angle [degrees].
    view_azimuth : float or ndarray, optional
        View azimuth angle [degrees].
    """

    solar_zenith: ArrayLike
    view_zenith: ArrayLike
    relative_azimuth: Optional[ArrayLike] = None
    solar_azimuth: Optional[ArrayLike] = None
    view_azimuth: Optional[ArrayLike] = None

    def __post_init__(self):
        """Compute relative azimuth if not provided."""
        if self.relative_azimuth is None:
            if self.solar_azimuth is None or self.view_azimuth is None:
                raise ValueError(
                    "relative_azimuth or both solar_azimuth and view_azimuth "
                    "are required"
                )
            self.relative_azimuth = np.abs(
                np.asarray(self.view_azimuth) - np.asarray(self.solar_azimuth)
            )
            # Normalize to [0, 180]
            self.relative_azimuth = np.where(
                self.relative_azimuth > 180,
                360 - self.relative_azimuth,
                self.relative_azimuth,
            )

    @property
    def xmus(self) -> ArrayLike:
        """Cosine of the solar zenith angle."""
        return np.cos(np.deg2rad(self.solar_zenith))

    @property
    def xmuv(self) -> ArrayLike:
        """Cosine of the view zenith angle."""
        return np.cos(np.deg2rad(self.view_zenith))

    @property
    def cosxfi(self) -> ArrayLike:
        """Cosine of the relative azimuth angle."""
        return np.cos(np.deg2rad(self.relative_azimuth))

    @property
    def scattering_angle(self) -> ArrayLike:
        """Scattering angle [degrees]."""
        return scattering_angle(self.xmus, self.xmuv, self.cosxfi)


@dataclass
class TableBrackets:
    """
    Bracketing table indices and interpolation fractions of a pixel.

    Attributes
    ----------
    ip1, ip2 : ndarray of int
        Pressure table indices, ``ip2 = ip1 + 1``.
    iaot1, iaot2 : ndarray of int
        AOT table indices, ``iaot2 = iaot1 + 1``.
    dpres : ndarray
        Pressure fraction between ``ip1`` and ``ip2``.
    deltaaot : ndarray
        Linear AOT fraction between ``iaot1`` and ``iaot2``.
    deltaaot_log : ndarray
        Log-AOT fraction between ``iaot1`` and ``iaot2``.
    """

    ip1: np.ndarray
    ip2: np.ndarray
    iaot1: np.ndarray
    iaot2: np.ndarray
    dpres: np.ndarray
    deltaaot: np.ndarray
    deltaaot_log: np.ndarray


def _last_true(mask: np.ndarray) -> np.ndarray:
    """Index of the last True along the last axis, 0 if there is none."""
    n = mask.shape[-1]
    last = n - 1 - np.argmax(mask[..., ::-1], axis=-1)
    return np.where(mask.any(axis=-1), last, 0)


def pressure_bracket(
    pressure: ArrayLike,
    table: np.ndarray = PRESSURE_TABLE,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Bracket a surface pressure in the pressure table.

    ``ip1`` is the last index, scanning all but the final entry, for which
    ``pressure < table[ip1]``; it defaults to 0. Pressures outside the
    table extrapolate from the edge bracket.

    Parameters
    ----------
    pressure : float or array_like
        Surface pressure [mb].
    table : ndarray, optional
        Pressure table, descending.

    Returns
    -------
    ip1, ip2 : ndarray of int
        Bracketing indices.
    """
    pressure = np.asarray(pressure, dtype=np.float64)
    ip1 = _last_true(pressure[..., np.newaxis] < table[:-1])
    return ip1, ip1 + 1


def aot_bracket(
    aot: ArrayLike,
    table: np.ndarray = AOT_TABLE,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Bracket an AOT value in the AOT table.

    ``iaot1`` is the last index among the first 21 entries for which
    ``aot > table[iaot1]``; it defaults to 0.

    Parameters
    ----------
    aot : float or array_like
        Aerosol optical thickness at 550 nm.
    table : ndarray, optional
        AOT table, increasing.

    Returns
    -------
    iaot1, iaot2 : ndarray of int
        Bracketing indices.
    """
    aot = np.asarray(aot, dtype=np.float64)
    iaot1 = _last_true(aot[..., np.newaxis] > table[:AOT_SCAN_LIMIT])
    return iaot1, iaot1 + 1


def locate(pressure: ArrayLike, aot: ArrayLike) -> TableBrackets:
    """
    Bracket pressure and AOT and compute the interpolation fractions.

    The same brackets are used for intrinsic reflectance, transmission
    and spherical albedo so the blended quantities stay consistent.

    Parameters
    ----------
    pressure : float or array_like
        Surface pressure [mb].
    aot : float or array_like
        Aerosol optical thickness at 550 nm (after spectral adjustment).

    Returns
    -------
    TableBrackets
        Indices and fractions.
    """
    pressure = np.asarray(pressure, dtype=np.float64)
    aot = np.asarray(aot, dtype=np.float64)
    ip1, ip2 = pressure_bracket(pressure)
    iaot1, iaot2 = aot_bracket(aot)

    dpres = (pressure - PRESSURE_TABLE[ip1]) / (
        PRESSURE_TABLE[ip2] - PRESSURE_TABLE[ip1])
    deltaaot = (aot - AOT_TABLE[iaot1]) / (AOT_TABLE[iaot2] - AOT_TABLE[iaot1])
    with np.errstate(divide="ignore", invalid="ignore"):
        deltaaot_log = (np.log(aot) - LOG_AOT_TABLE[iaot1]) / (
            LOG_AOT_TABLE[iaot2] - LOG_AOT_TABLE[iaot1])

    return TableBrackets(ip1, ip2, iaot1, iaot2, dpres, deltaaot, deltaaot_log)


def view_angle_bin(xtv: ArrayLike, grid: AngleGrid = DEFAULT_ANGLE_GRID) -> np.ndarray:
    """
    View zenith bin of the angle tables.

    ``itv = 0`` for ``xtv <= xtv_min``, otherwise
    ``int((xtv - xtv_min) / xtv_step + 1)``.

    Raises
    ------
    ZenithAngleError
        If the bin has no upper neighbour in the angle tables.
    """
    xtv = np.asarray(xtv, dtype=np.float64)
    itv = np.where(
        xtv <= grid.xtv_min,
        0,
        ((xtv - grid.xtv_min) / grid.xtv_step + 1.0).astype(np.int64),
    )
    bad = itv > NVIEW_ZEN_VALS - 2
    if np.any(bad):
        value = float(np.max(xtv[bad]) if xtv.ndim else xtv)
        raise ZenithAngleError(
            f"View zenith (xtv) is too large: {value:f}", value)
    return itv


def solar_angle_bin(
    xts: ArrayLike,
    minimum: float = DEFAULT_ANGLE_GRID.xts_min,
    step: float = DEFAULT_ANGLE_GRID.xts_step,
    name: str = "Solar zenith",
) -> np.ndarray:
    """
    Sun angle bin of the angle and transmission tables.

    ``its = 0`` for ``xts <= minimum``, otherwise
    ``int((xts - minimum) / step)``.

    Parameters
    ----------
    xts : float or array_like
        Zenith angle [degrees].
    minimum, step : float, optional
        Grid minimum and step [degrees].
    name : str, optional
        Angle name used in the error message.

    Raises
    ------
    ZenithAngleError
        If any bin exceeds 19.
    """
    xts = np.asarray(xts, dtype=np.float64)
    its = np.where(
        xts <= minimum,
        0,
        ((xts - minimum) / step).astype(np.int64),
    )
    bad = its > MAX_SOLAR_BIN
    if np.any(bad):
        value = float(np.max(xts[bad]) if xts.ndim else xts)
        raise ZenithAngleError(f"{name} (xts) is too large: {value:f}", value)
    return its


def scattering_angle(xmus: ArrayLike, xmuv: ArrayLike, cosxfi: ArrayLike) -> ArrayLike:
    """
    Scattering angle from the sun/view geometry.

    Parameters
    ----------
    xmus, xmuv : float or ndarray
        Cosines of the solar and view zenith angles.
    cosxfi : float or ndarray
        Cosine of the relative azimuth.

    Returns
    -------
    float or ndarray
        Scattering angle [degrees].
    """
    cscaa = -xmus * xmuv - cosxfi * np.sqrt(1.0 - xmus * xmus) * np.sqrt(
        1.0 - xmuv * xmuv)
    # rounding can push |cscaa| just past 1 near the principal plane
    return np.rad2deg(np.arccos(np.clip(cscaa, -1.0, 1.0)))
