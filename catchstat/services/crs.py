"""
@file crs.py
@brief Coordinate reference system identity helpers

@details
Every geometry-bearing record carries its CRS as a pyproj.CRS (or None when
the source declared none). These helpers normalise user input into CRS
objects and enforce that all inputs to one computation agree.

@author Catchstat Project
@date 2026-10-18
@version 1.0
@license AGPL-3.0
"""

import logging
from typing import Iterable, Optional

from pyproj import CRS
from pyproj.exceptions import CRSError

from catchstat.core.exceptions import CRSMismatchError, InvalidCRSError

logger = logging.getLogger(__name__)


def normalize_crs(value) -> Optional[CRS]:
    """
    @brief Convert an SRID, authority string, WKT or CRS into a pyproj.CRS

    @param value int SRID (e.g. 25832), "EPSG:25832", WKT, CRS or None
    @return pyproj.CRS, or None when no CRS was declared
    @throws InvalidCRSError if pyproj cannot resolve the value
    """
    if value is None:
        return None
    if isinstance(value, CRS):
        return value
    try:
        return CRS.from_user_input(value)
    except CRSError as e:
        raise InvalidCRSError(f"Unknown coordinate reference system {value!r}: {e}") from e


def shared_crs(records: Iterable, context: str = "") -> Optional[CRS]:
    """
    @brief Return the single CRS declared by a set of records

    @details
    Records without a declared CRS are ignored. The first declared CRS becomes
    the reference; any later record declaring a different one aborts the
    computation.

    @param records Objects exposing a ``crs`` attribute
    @param context Short label used in the error message
    @return The shared CRS, or None if no record declared one
    @throws CRSMismatchError if two declared CRSs differ
    """
    found = None
    for record in records:
        crs = getattr(record, "crs", None)
        if crs is None:
            continue
        if found is None:
            found = crs
        elif crs != found:
            raise CRSMismatchError(found, crs, context)
    return found


def warn_if_geographic(crs: Optional[CRS], what: str) -> None:
    """Log a warning when areas would be computed in angular units."""
    if crs is not None and crs.is_geographic:
        logger.warning(
            f"{what} uses geographic CRS {crs.to_string()}; "
            "areas will be in squared degrees, reproject to a planar CRS"
        )
