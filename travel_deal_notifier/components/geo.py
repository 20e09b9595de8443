"""Great-circle distance and coarse grid quantization."""

import math
from decimal import Decimal

from ..models.deal import Coordinates

EARTH_RADIUS_KM = 6371.0
DEFAULT_CELL_SIZE_DEG = 0.01


def haversine_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat))
        * math.cos(math.radians(b.lat))
        * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push h a hair outside [0, 1] for near-antipodal points.
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def _decimals_for(cell_size_deg: float) -> int:
    exponent = Decimal(str(cell_size_deg)).normalize().as_tuple().exponent
    return max(0, -int(exponent))


def _snap(value: float, cell_size_deg: float, decimals: int) -> float:
    # Half-up, also below zero.
    return round(math.floor(value / cell_size_deg + 0.5) * cell_size_deg, decimals)


def grid_anchor(
    coord: Coordinates, cell_size_deg: float = DEFAULT_CELL_SIZE_DEG
) -> Coordinates:
    """Snap a point to the nearest multiple of the cell size on both axes."""
    if cell_size_deg <= 0:
        raise ValueError("cell_size_deg must be positive")

    decimals = _decimals_for(cell_size_deg)
    return Coordinates(
        lat=_snap(coord.lat, cell_size_deg, decimals),
        lng=_snap(coord.lng, cell_size_deg, decimals),
    )


def grid_cell(coord: Coordinates, cell_size_deg: float = DEFAULT_CELL_SIZE_DEG) -> str:
    """Stable string key of the grid cell containing ``coord``.

    Two points in the same cell always share a key. Points either side of a
    cell boundary get different keys even when they are metres apart; that
    is the accepted cost of a fixed grid.
    """
    anchor = grid_anchor(coord, cell_size_deg)
    decimals = _decimals_for(cell_size_deg)
    # "+ 0.0" folds -0.0 into 0.0
    return f"{anchor.lat + 0.0:.{decimals}f}:{anchor.lng + 0.0:.{decimals}f}"
