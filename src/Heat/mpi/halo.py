"""Halo exchange implementations for distributed grids.

Both exchangers fill only the halo slots that face a neighbor rank. Slots on
a global edge are left untouched for the boundary condition. Corner halo
cells are never exchanged (the five-point stencil does not read them).
"""

from __future__ import annotations
from abc import ABC, abstractmethod

import numpy as np
from mpi4py import MPI

from ..errors import CommunicationError


# Message tags name the direction the data travels
_TAGS = {"up": 0, "down": 1, "left": 2, "right": 3}
_OPPOSITE = {"up": "down", "down": "up", "left": "right", "right": "left"}

# Per-axis (lower, upper) neighbor names; axis 0 = rows, axis 1 = cols
_AXES = [("up", "down"), ("left", "right")]


def _rank_or_null(rank):
    return rank if rank is not None else MPI.PROC_NULL


def _edge_slices():
    """Interior edge (send) and halo (recv) slices for each direction."""
    return {
        "up": {"send": (1, slice(1, -1)), "recv": (0, slice(1, -1))},
        "down": {"send": (-2, slice(1, -1)), "recv": (-1, slice(1, -1))},
        "left": {"send": (slice(1, -1), 1), "recv": (slice(1, -1), 0)},
        "right": {"send": (slice(1, -1), -2), "recv": (slice(1, -1), -1)},
    }


class HaloExchanger(ABC):
    """Abstract base for halo exchange strategies."""

    name = "abstract"

    @abstractmethod
    def setup(self, local_shape: tuple[int, int]):
        """Initialize exchange buffers or datatypes."""
        pass

    def exchange(self, arr: np.ndarray, cart_comm: MPI.Comm, neighbors: dict):
        """Exchange halos with all neighbors, raising CommunicationError on failure."""
        try:
            self._exchange(arr, cart_comm, neighbors)
        except MPI.Exception as exc:
            raise CommunicationError(
                f"Halo exchange ({self.name}) failed on rank "
                f"{cart_comm.Get_rank()}: {exc}"
            ) from exc

    @abstractmethod
    def _exchange(self, arr: np.ndarray, cart_comm: MPI.Comm, neighbors: dict):
        pass


class NumpyHaloExchanger(HaloExchanger):
    """Halo exchange using numpy buffer copies and paired Sendrecv per axis."""

    name = "numpy"

    def setup(self, local_shape: tuple[int, int]):
        """Pre-compute slices for each axis."""
        self._slices = _edge_slices()

    def _exchange(self, arr: np.ndarray, cart_comm: MPI.Comm, neighbors: dict):
        for lower, upper in _AXES:
            lo = neighbors.get(lower)
            hi = neighbors.get(upper)
            if lo is None and hi is None:
                continue

            # Send to upper, receive from lower; then the reverse
            for send_dir, recv_dir in [(upper, lower), (lower, upper)]:
                dest = _rank_or_null(neighbors.get(send_dir))
                source = _rank_or_null(neighbors.get(recv_dir))
                tag = _TAGS[send_dir]

                send = np.ascontiguousarray(arr[self._slices[send_dir]["send"]])
                recv = np.empty_like(send)
                cart_comm.Sendrecv(send, dest, tag, recv, source, tag)
                if neighbors.get(recv_dir) is not None:
                    arr[self._slices[recv_dir]["recv"]] = recv


class DatatypeHaloExchanger(HaloExchanger):
    """Halo exchange using MPI derived datatypes (zero-copy) and Isend/Irecv."""

    name = "custom"

    def setup(self, local_shape: tuple[int, int]):
        """Create MPI datatypes and pre-compute flat offsets."""
        rows, cols = local_shape
        hr, hc = rows + 2, cols + 2
        self._halo_shape = (hr, hc)

        def flat_idx(r, c):
            return r * hc + c

        # Row: cols contiguous doubles. Column: rows doubles, stride of one halo row.
        self._dt_row = MPI.DOUBLE.Create_contiguous(cols)
        self._dt_row.Commit()
        self._dt_col = MPI.DOUBLE.Create_vector(rows, 1, hc)
        self._dt_col.Commit()

        self._info = {
            "up": {"dt": self._dt_row, "send": flat_idx(1, 1), "recv": flat_idx(0, 1)},
            "down": {"dt": self._dt_row, "send": flat_idx(hr - 2, 1), "recv": flat_idx(hr - 1, 1)},
            "left": {"dt": self._dt_col, "send": flat_idx(1, 1), "recv": flat_idx(1, 0)},
            "right": {"dt": self._dt_col, "send": flat_idx(1, hc - 2), "recv": flat_idx(1, hc - 1)},
        }

    def _exchange(self, arr: np.ndarray, cart_comm: MPI.Comm, neighbors: dict):
        if arr.shape != self._halo_shape or not arr.flags.c_contiguous:
            raise ValueError(
                f"Expected C-contiguous array of shape {self._halo_shape}, got {arr.shape}"
            )
        flat = arr.ravel()

        requests = []
        # Post all receives before any send
        for direction, info in self._info.items():
            source = neighbors.get(direction)
            if source is None:
                continue
            # Data from the 'up' neighbor travels down, and so on
            tag = _TAGS[_OPPOSITE[direction]]
            requests.append(
                cart_comm.Irecv([flat[info["recv"]:], 1, info["dt"]], source, tag)
            )
        for direction, info in self._info.items():
            dest = neighbors.get(direction)
            if dest is None:
                continue
            requests.append(
                cart_comm.Isend([flat[info["send"]:], 1, info["dt"]], dest, _TAGS[direction])
            )

        MPI.Request.Waitall(requests)

    def __del__(self):
        """Free MPI datatypes."""
        for name in ("_dt_row", "_dt_col"):
            dt = getattr(self, name, None)
            if dt is not None and dt != MPI.DATATYPE_NULL and not MPI.Is_finalized():
                dt.Free()


def create_halo_exchanger(exchange_type: str) -> HaloExchanger:
    """Factory: 'numpy' for buffer-based, 'custom' for MPI datatypes."""
    if exchange_type == "numpy":
        return NumpyHaloExchanger()
    elif exchange_type == "custom":
        return DatatypeHaloExchanger()
    else:
        raise ValueError(f"Unknown halo_exchange type: {exchange_type}")
