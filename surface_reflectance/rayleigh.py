"""
Molecular (Rayleigh) reflectance of the atmosphere.

This module computes the reflectance of a purely molecular atmosphere
above a black surface, including:

- Rayleigh optical depth at the surface pressure
- Chandrasekhar's polynomial approximation of the molecular reflectance,
  with azimuthal Fourier terms of orders 0, 1 and 2

The molecular reflectance is combined with the intrinsic reflectance of the
look-up tables to apply the water vapor correction to the aerosol part of
the path reflectance only.

References
----------
.. [1] Chandrasekhar, S. (1960). Radiative Transfer. Dover, New York.
.. [2] Vermote, E.F. and Tanre, D. (1992). Analytical expressions for
       radiative properties of planar Rayleigh scattering media, including
       polarization contributions. J. Quant. Spectrosc. Radiat. Transfer,
       47:305-314.
"""

import numpy as np
from typing import Union

from .constants import ONE_DIV_ATMOS_PRES_0

#: Depolarization term (1 - f) / (1 + 2f) with f = 0.0279 / (2 - 0.0279)
XFD = 0.958725777

#: Order 0 coefficients, applied to [1, ln(tau), s, s ln(tau), p, p ln(tau),
#: q, q ln(tau), r, r ln(tau)] with s = mus + muv, p = mus muv,
#: q = mus^2 + muv^2, r = mus^2 muv^2
AS0 = np.array([
    0.33243832, -6.777104e-02, 0.16285370, 1.577425e-03,
    -0.30924818, -1.240906e-02, -0.10324388, 3.241678e-02, 0.11493334,
    -3.503695e-02,
])

#: Order 1 coefficients, applied to [1, ln(tau)]
AS1 = np.array([0.19666292, -5.439061e-02])

#: Order 2 coefficients, applied to [1, ln(tau)]
AS2 = np.array([0.14545937, -2.910845e-02])


def rayleigh_optical_depth(
    tauray: Union[float, np.ndarray],
    pressure: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Scale the sea level Rayleigh optical depth to the surface pressure.

    Parameters
    ----------
    tauray : float or array_like
        Rayleigh optical depth at 1013 mb.
    pressure : float or array_like
        Surface pressure [mb].

    Returns
    -------
    float or ndarray
        ``tauray * pressure / 1013``.
    """
    return np.asarray(tauray) * np.asarray(pressure) * ONE_DIV_ATMOS_PRES_0


def molecular_reflectance(
    xphi: Union[float, np.ndarray],
    xmuv: Union[float, np.ndarray],
    xmus: Union[float, np.ndarray],
    xtau: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Molecular reflectance from Chandrasekhar's approximation.

    Parameters
    ----------
    xphi : float or array_like
        Azimuthal difference between sun and view directions [degrees].
    xmuv : float or array_like
        Cosine of the view zenith angle.
    xmus : float or array_like
        Cosine of the solar zenith angle.
    xtau : float or array_like
        Molecular optical depth.

    Returns
    -------
    float or ndarray
        Molecular reflectance, 0.0 to 1.0.

    Notes
    -----
    The reflectance is the sum of the Fourier terms

    .. math::

        \\rho_R = I_0 + 2 (I_1 \\cos(\\pi - \\phi) + I_2 \\cos 2\\phi)

    each made of a single scattering part and a multiple scattering
    correction ``cfonc_k * fs_k`` where ``fs_k`` is a polynomial in
    ln(tau), mus and muv. The result depends on ``phi`` only through
    ``cos(phi)`` and ``cos(2 phi)``, so it is symmetric in ``phi``.
    The mus factor of the single scattering term cancels against the
    final division by mus and is omitted.
    """
    xmuv = np.asarray(xmuv, dtype=np.float64)
    xmus = np.asarray(xmus, dtype=np.float64)
    xtau = np.asarray(xtau, dtype=np.float64)

    phios = np.deg2rad(xphi)
    xcosf2 = -np.cos(phios)
    xcosf3 = np.cos(2.0 * phios)

    xmus2 = xmus * xmus
    xmuv2 = xmuv * xmuv

    xph1 = 1.0 + (3.0 * xmus2 - 1.0) * (3.0 * xmuv2 - 1.0) * XFD * 0.125
    xph3 = (1.0 - xmus2) * (1.0 - xmuv2)
    xph2 = -xmus * xmuv * np.sqrt(xph3) * XFD * 0.75
    xph3 = xph3 * XFD * 0.1875

    xitm = (1.0 - np.exp(-xtau * (1.0 / xmus + 1.0 / xmuv))) / (
        4.0 * (xmus + xmuv))
    xp1 = xph1 * xitm
    xp2 = xph2 * xitm
    xp3 = xph3 * xitm

    xitm = (1.0 - np.exp(-xtau / xmus)) * (1.0 - np.exp(-xtau / xmuv))
    cfonc1 = xph1 * xitm
    cfonc2 = xph2 * xitm
    cfonc3 = xph3 * xitm

    xlntau = np.log(xtau)
    s = xmus + xmuv
    p = xmus * xmuv
    q = xmus2 + xmuv2
    r = xmus2 * xmuv2
    pl = np.stack(np.broadcast_arrays(
        np.ones_like(xlntau), xlntau, s, xlntau * s, p, xlntau * p,
        q, xlntau * q, r, xlntau * r,
    ), axis=-1)

    fs0 = pl @ AS0
    fs1 = AS1[0] + AS1[1] * xlntau
    fs2 = AS2[0] + AS2[1] * xlntau

    xitot1 = xp1 + cfonc1 * fs0
    xitot2 = xp2 + cfonc2 * fs1
    xitot3 = xp3 + cfonc3 * fs2

    return xitot1 + 2.0 * (xitot2 * xcosf2 + xitot3 * xcosf3)
