"""
surface_reflectance: Lambertian Surface Reflectance from Satellite TOA Reflectance
=================================================================================

A Python implementation of the look-up table driven atmospheric correction
used for Landsat-8/9 OLI and Sentinel-2 MSI land surface reflectance.

Radiative-transfer look-up tables of intrinsic atmospheric reflectance,
transmission and spherical albedo are loaded once, then interpolated per
pixel at the pixel's geometry, surface pressure and aerosol optical
thickness to invert top-of-atmosphere (TOA) reflectance.

Main Classes
------------
SurfaceReflectanceCorrection
    Corrects pixels, lines and scenes of a satellite family.
LookupTables
    Read-only storage of the look-up tables.

Modules
-------
constants
    Table extents, reference grids and satellite band catalogs.
lut_reader
    Loader of the four look-up table inputs.
geometry
    Pressure/AOT brackets, angle bins and scattering angle.
interpolation
    Interpolation of intrinsic reflectance, transmission and albedo.
gases
    Ozone, water vapor and other gases transmittance.
rayleigh
    Molecular reflectance (Chandrasekhar approximation).
correction
    Table-driven and coefficient-driven correction.

Example
-------
>>> from surface_reflectance import get_satellite, read_luts, LutPaths  # doctest: +SKIP
>>> luts = read_luts(get_satellite('landsat-8'),  # doctest: +SKIP
...                  LutPaths('anglehdf', 'intrefnm', 'transmnm', 'spheranm'))
>>> print(luts.nbands)  # doctest: +SKIP
8
"""

__version__ = "0.1.0"

from .constants import AngleGrid, SatelliteFamily, get_satellite
from .correction import (
    AncillaryData,
    CoefficientFit,
    CorrectionResult,
    SurfaceReflectanceCorrection,
)
from .errors import (
    LutAllocationError,
    LutError,
    LutFormatError,
    LutIntegrityError,
    LutReadError,
    ZenithAngleError,
)
from .gases import TransmissionCoefficients
from .geometry import ViewGeometry
from .lut_reader import LutPaths, read_luts
from .tables import LookupTables

__all__ = [
    "AncillaryData",
    "AngleGrid",
    "CoefficientFit",
    "CorrectionResult",
    "LookupTables",
    "LutAllocationError",
    "LutError",
    "LutFormatError",
    "LutIntegrityError",
    "LutPaths",
    "LutReadError",
    "SatelliteFamily",
    "SurfaceReflectanceCorrection",
    "TransmissionCoefficients",
    "ViewGeometry",
    "ZenithAngleError",
    "get_satellite",
    "read_luts",
    "__version__",
]
