"""
Interpolation Engine
====================

Interpolates the look-up tables at a pixel's geometry, surface pressure
and aerosol optical thickness:

- Intrinsic reflectance: scattering-angle interpolation at the four
  surrounding (view, sun) angle cells, bilinear blending of the cells,
  then log-AOT and pressure blending
- Total transmission along the sun or view path: sun angle, then linear
  AOT, then pressure
- Spherical albedo: linear AOT, then pressure

The 4-D tables are addressed through flat row-major views with the same
index arithmetic as the table layout in :mod:`surface_reflectance.tables`.
The scattering-angle axis of ``rolutt`` is ragged: each (view, sun) cell
holds ``nbfi`` samples, 4 degrees apart from ``tsmax`` down towards
``tsmin``, starting at ``indts[its] + nbfic - nbfi``.
"""

from typing import Union

import numpy as np

from .constants import NAOT_VALS, NPRES_VALS, NSUNANGLE_VALS, SCATTERING_STEP
from .geometry import TableBrackets, scattering_angle, solar_angle_bin
from .tables import LookupTables

ArrayLike = Union[float, np.ndarray]


def interp_refl_using_scat_angle(
    tables: LookupTables,
    rolutt_index: np.ndarray,
    its: np.ndarray,
    itv: np.ndarray,
    scaa: ArrayLike,
    t: ArrayLike,
    u: ArrayLike,
) -> np.ndarray:
    """
    Interpolate intrinsic reflectance at a scattering angle.

    Parameters
    ----------
    tables : LookupTables
        Loaded tables.
    rolutt_index : ndarray of int
        Flat index of the (band, pressure, aot) block in ``rolutt``.
    its, itv : ndarray of int
        Sun and view angle bins; the corners are ``its``/``its+1`` and
        ``itv``/``itv+1``.
    scaa : float or ndarray
        Scattering angle [degrees].
    t, u : float or ndarray
        Sun and view interpolation weights of the ``its``/``itv`` corner.

    Returns
    -------
    ndarray
        Interpolated reflectance.

    Notes
    -----
    Corners on the first sun or view bin hold a single sample and are used
    without scattering-angle interpolation.
    """
    rolutt = tables.rolutt.reshape(-1)
    indts = tables.indts.reshape(-1)

    ro = []
    for i in range(4):
        is_ = its + i % 2
        iv = itv + i // 2
        xtsmax = tables.tsmax[iv, is_]
        xtsmin = tables.tsmin[iv, is_]
        nbfi = tables.nbfi[iv, is_]
        j = (indts[is_] + tables.nbfic[iv, is_] - nbfi).astype(np.int64)
        edge = (is_ == 0) | (iv == 0)

        isca = np.trunc((xtsmax - scaa) * 0.25 + 1).astype(np.int64)
        isca = np.maximum(isca, 1)
        inside = isca + 1 < nbfi
        isca = np.where(inside, isca, nbfi.astype(np.int64) - 1)
        sca1 = xtsmax - (isca - 1) * SCATTERING_STEP
        sca2 = np.where(inside, sca1 - SCATTERING_STEP, xtsmin)

        first = rolutt_index + j
        lower = np.where(edge, first, first + isca - 1)
        upper = np.where(edge, first, first + isca)
        roinf = rolutt[lower]
        rosup = rolutt[upper]
        with np.errstate(divide="ignore", invalid="ignore"):
            ro_scat = roinf + (rosup - roinf) * (scaa - sca1) / (sca2 - sca1)
        ro.append(np.where(edge, rolutt[first], ro_scat))

    return (ro[3]
            + u * (ro[1] - ro[3])
            + t * (ro[2] - ro[3])
            + u * t * (ro[0] - ro[1] - ro[2] + ro[3]))


def intrinsic_reflectance(
    tables: LookupTables,
    iband: int,
    brackets: TableBrackets,
    xts: ArrayLike,
    xtv: ArrayLike,
    xmus: ArrayLike,
    xmuv: ArrayLike,
    cosxfi: ArrayLike,
    its: np.ndarray,
    itv: np.ndarray,
) -> np.ndarray:
    """
    Intrinsic reflectance of the atmosphere at a pixel.

    Parameters
    ----------
    tables : LookupTables
        Loaded tables.
    iband : int
        Stored band index.
    brackets : TableBrackets
        Pressure/AOT brackets and fractions.
    xts, xtv : float or ndarray
        Solar and view zenith angles [degrees].
    xmus, xmuv : float or ndarray
        Cosines of the solar and view zenith angles.
    cosxfi : float or ndarray
        Cosine of the relative azimuth.
    its, itv : ndarray of int
        Sun and view angle bins.

    Returns
    -------
    ndarray
        Intrinsic reflectance ``roatm``.

    Notes
    -----
    Intrinsic reflectance is interpolated linearly in log(AOT), where it
    varies smoothly, and linearly in pressure.
    """
    nsolar = tables.nsolar
    scaa = scattering_angle(xmus, xmuv, cosxfi)

    tts = tables.tts
    ttv = tables.ttv
    t = (tts[its + 1] - xts) / (tts[its + 1] - tts[its])
    u = (ttv[itv + 1, its] - xtv) / (ttv[itv + 1, its] - ttv[itv, its])

    band_index = iband * NPRES_VALS * NAOT_VALS * nsolar
    ip1_index = band_index + brackets.ip1 * NAOT_VALS * nsolar
    ip2_index = band_index + brackets.ip2 * NAOT_VALS * nsolar
    iaot1_index = brackets.iaot1 * nsolar
    iaot2_index = brackets.iaot2 * nsolar

    def at(index):
        return interp_refl_using_scat_angle(
            tables, index, its, itv, scaa, t, u)

    roiaot1 = at(ip1_index + iaot1_index)
    roiaot2 = at(ip1_index + iaot2_index)
    rop1 = roiaot1 + (roiaot2 - roiaot1) * brackets.deltaaot_log

    roiaot1 = at(ip2_index + iaot1_index)
    roiaot2 = at(ip2_index + iaot2_index)
    rop2 = roiaot1 + (roiaot2 - roiaot1) * brackets.deltaaot_log

    return rop1 + (rop2 - rop1) * brackets.dpres


def transmission(
    tables: LookupTables,
    iband: int,
    brackets: TableBrackets,
    zenith: ArrayLike,
    minimum: float,
    step: float,
) -> np.ndarray:
    """
    Total one-way transmission along a sun or view path.

    Parameters
    ----------
    tables : LookupTables
        Loaded tables.
    iband : int
        Stored band index.
    brackets : TableBrackets
        Pressure/AOT brackets and fractions.
    zenith : float or ndarray
        Zenith angle of the path [degrees].
    minimum, step : float
        Grid minimum and step used to bin ``zenith``.

    Returns
    -------
    ndarray
        Transmission.

    Raises
    ------
    ZenithAngleError
        If the angle bin exceeds the table range.
    """
    zenith = np.asarray(zenith, dtype=np.float64)
    its = solar_angle_bin(zenith, minimum, step, name="Zenith angle")
    tts = tables.tts
    xmts = (zenith - tts[its]) / tables.grid.xts_step

    transt = tables.transt.reshape(-1)
    band_index = iband * NPRES_VALS * NAOT_VALS * NSUNANGLE_VALS

    def along_angle(ip, iaot):
        index = (band_index + ip * NAOT_VALS * NSUNANGLE_VALS
                 + iaot * NSUNANGLE_VALS + its)
        xtranst = transt[index]
        return xtranst + (transt[index + 1] - xtranst) * xmts

    deltaaot = brackets.deltaaot
    xtiaot1 = along_angle(brackets.ip1, brackets.iaot1)
    xtiaot2 = along_angle(brackets.ip1, brackets.iaot2)
    xtts1 = xtiaot1 + (xtiaot2 - xtiaot1) * deltaaot

    xtiaot1 = along_angle(brackets.ip2, brackets.iaot1)
    xtiaot2 = along_angle(brackets.ip2, brackets.iaot2)
    xtts2 = xtiaot1 + (xtiaot2 - xtiaot1) * deltaaot

    return xtts1 + (xtts2 - xtts1) * brackets.dpres


def spherical_albedo(
    tables: LookupTables,
    iband: int,
    brackets: TableBrackets,
) -> np.ndarray:
    """Spherical albedo of the atmosphere, linear in AOT and pressure."""
    sphalbt = tables.sphalbt[iband]
    deltaaot = brackets.deltaaot

    xtiaot1 = sphalbt[brackets.ip1, brackets.iaot1]
    xtiaot2 = sphalbt[brackets.ip1, brackets.iaot2]
    satm1 = xtiaot1 + (xtiaot2 - xtiaot1) * deltaaot

    xtiaot1 = sphalbt[brackets.ip2, brackets.iaot1]
    xtiaot2 = sphalbt[brackets.ip2, brackets.iaot2]
    satm2 = xtiaot1 + (xtiaot2 - xtiaot1) * deltaaot

    return satm1 + (satm2 - satm1) * brackets.dpres
