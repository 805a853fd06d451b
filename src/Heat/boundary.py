"""Reflective (zero-flux) boundary condition at the global domain edges."""

import numpy as np


# Halo slice -> interior slice it mirrors (two cells in from the edge)
_LEFT_RIGHT = {
    "left": ((slice(1, -1), 0), (slice(1, -1), 2)),
    "right": ((slice(1, -1), -1), (slice(1, -1), -3)),
}
_UP_DOWN = {
    "up": ((0, slice(None)), (2, slice(None))),
    "down": ((-1, slice(None)), (-3, slice(None))),
}


def apply_reflective_boundary(arr: np.ndarray, is_boundary: dict):
    """Mirror the interior into the halo on every global edge of ``arr``.

    Halos facing a neighbor rank are left alone. Columns are mirrored first
    over the interior rows, then rows over the full width, so the corner halo
    of a corner subgrid is the mirror of a mirror.
    """
    for edges in (_LEFT_RIGHT, _UP_DOWN):
        for direction, (halo, source) in edges.items():
            if is_boundary[direction]:
                arr[halo] = arr[source]
