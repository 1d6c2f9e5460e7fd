"""
Absorption by atmospheric gases.

This module computes the two-way gaseous transmittance along the sun and
view paths for:

- Ozone, from the column amount and a per-band absorption coefficient
- Water vapor, with a power law in the absorber amount, for the full and
  for half the column content
- Other gases (O2, CO2, CH4, ...), from the surface pressure

The per-band coefficients are supplied by the caller in a
:class:`TransmissionCoefficients` record.
"""

from dataclasses import dataclass, fields
from typing import NamedTuple, Sequence, Union

import numpy as np

#: Water vapor absorber amounts at or below this are treated as no absorber
MIN_WATER_VAPOR_AMOUNT = 1.0e-06


@dataclass
class TransmissionCoefficients:
    """
    Per-band gaseous transmission and Rayleigh coefficients.

    Every attribute holds one value per stored band.

    Attributes
    ----------
    tauray : sequence of float
        Rayleigh optical depth at 1013 mb.
    ogtransa1, ogtransb0, ogtransb1 : sequence of float
        Other gases transmission coefficients.
    wvtransa, wvtransb : sequence of float
        Water vapor transmission coefficients.
    oztransa : sequence of float
        Ozone transmission coefficient.
    """

    tauray: Sequence[float]
    ogtransa1: Sequence[float]
    ogtransb0: Sequence[float]
    ogtransb1: Sequence[float]
    wvtransa: Sequence[float]
    wvtransb: Sequence[float]
    oztransa: Sequence[float]

    def __post_init__(self):
        lengths = set()
        for f in fields(self):
            value = np.asarray(getattr(self, f.name), dtype=np.float64)
            setattr(self, f.name, value)
            lengths.add(value.shape)
        if len(lengths) != 1 or next(iter(lengths)) == ():
            raise ValueError(
                "Transmission coefficients must be sequences of equal length"
            )

    @property
    def nbands(self) -> int:
        return len(self.tauray)


class GasTransmittance(NamedTuple):
    """Gaseous transmittances of one band."""

    ozone: Union[float, np.ndarray]
    water_vapor: Union[float, np.ndarray]
    water_vapor_half: Union[float, np.ndarray]
    other: Union[float, np.ndarray]

    @property
    def tgo(self) -> Union[float, np.ndarray]:
        """Ozone and other gases transmittance (water vapor excluded)."""
        return self.other * self.ozone


def air_mass(xmus, xmuv):
    """Two-way air mass ``1/mus + 1/muv``."""
    return 1.0 / np.asarray(xmus) + 1.0 / np.asarray(xmuv)


def ozone_transmittance(
    oztransa: float,
    m: Union[float, np.ndarray],
    uoz: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Ozone transmittance ``exp(oztransa * m * uoz)``.

    Parameters
    ----------
    oztransa : float
        Ozone coefficient of the band (negative).
    m : float or array_like
        Two-way air mass.
    uoz : float or array_like
        Total column ozone [cm-atm].
    """
    return np.exp(oztransa * np.asarray(m) * np.asarray(uoz))


def water_vapor_transmittance(
    a: float,
    b: float,
    m: Union[float, np.ndarray],
    uwv: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Water vapor transmittance ``exp(-a * (m * uwv)**b)``.

    Parameters
    ----------
    a, b : float
        Water vapor coefficients of the band.
    m : float or array_like
        Two-way air mass.
    uwv : float or array_like
        Total column water vapor [g/cm2].

    Returns
    -------
    float or ndarray
        Transmittance; exactly 1.0 where ``m * uwv <= 1e-6``.
    """
    x = np.asarray(m) * np.asarray(uwv)
    valid = x > MIN_WATER_VAPOR_AMOUNT
    safe_x = np.where(valid, x, 1.0)
    return np.where(valid, np.exp(-a * safe_x ** b), 1.0)


def other_gases_transmittance(
    a1: float,
    b0: float,
    b1: float,
    m: Union[float, np.ndarray],
    atm_pres: Union[float, np.ndarray],
) -> Union[float, np.ndarray]:
    """
    Transmittance of the other absorbing gases.

    ``exp(-(a1 * P) * m ** exp(-(b0 + b1 * P)))`` with ``P`` the surface
    pressure relative to 1013 mb.
    """
    atm_pres = np.asarray(atm_pres)
    return np.exp(-(a1 * atm_pres) * np.asarray(m) ** np.exp(-(b0 + b1 * atm_pres)))


def gas_transmittance(
    coefs: TransmissionCoefficients,
    iband: int,
    xmus: Union[float, np.ndarray],
    xmuv: Union[float, np.ndarray],
    uoz: Union[float, np.ndarray],
    uwv: Union[float, np.ndarray],
    atm_pres: Union[float, np.ndarray],
) -> GasTransmittance:
    """
    Transmittance of ozone, water vapor and other gases for a band.

    Parameters
    ----------
    coefs : TransmissionCoefficients
        Per-band coefficients.
    iband : int
        Stored band index.
    xmus, xmuv : float or array_like
        Cosines of the solar and view zenith angles.
    uoz : float or array_like
        Total column ozone [cm-atm].
    uwv : float or array_like
        Total column water vapor [g/cm2].
    atm_pres : float or array_like
        Surface pressure relative to 1013 mb.

    Returns
    -------
    GasTransmittance
        Ozone, water vapor (full and half content) and other gases.
    """
    m = air_mass(xmus, xmuv)
    uwv = np.asarray(uwv)
    a = coefs.wvtransa[iband]
    b = coefs.wvtransb[iband]

    return GasTransmittance(
        ozone=ozone_transmittance(coefs.oztransa[iband], m, uoz),
        water_vapor=water_vapor_transmittance(a, b, m, uwv),
        water_vapor_half=water_vapor_transmittance(a, b, m, 0.5 * uwv),
        other=other_gases_transmittance(
            coefs.ogtransa1[iband], coefs.ogtransb0[iband],
            coefs.ogtransb1[iband], m, atm_pres,
        ),
    )
