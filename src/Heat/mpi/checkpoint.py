"""Collective MPI-IO checkpoints of the global temperature field.

Each snapshot is one file, ``<output_dir>/<index:05d>.bin``, holding the
M x N global field as row-major float64 with no header. Every rank writes
its halo-stripped interior through a subarray file view, so the ranks'
writes never overlap. The file is written under a ``.part`` name and only
renamed once all ranks have closed it successfully.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import numpy as np
from mpi4py import MPI

from ..errors import CheckpointError, raise_if_any_failed

log = logging.getLogger(__name__)


def checkpoint_name(index: int) -> str:
    """File name of snapshot ``index``."""
    return f"{index:05d}.bin"


class CheckpointWriter:
    """Writes snapshots of a distributed field into shared files.

    Parameters
    ----------
    output_dir : str or Path
        Directory holding the snapshot files. Created by rank 0.
    global_shape : tuple of int
        Global (M, N).
    local_shape : tuple of int
        This rank's interior (rows, cols).
    offset : tuple of int
        Global (row, col) of this rank's first interior cell.
    comm : MPI.Comm
        Communicator of all ranks that own a part of the field.
    snapshot_frequency : int
        Snapshot every ``snapshot_frequency`` iterations.
    """

    def __init__(
        self,
        output_dir,
        global_shape: tuple[int, int],
        local_shape: tuple[int, int],
        offset: tuple[int, int],
        comm: MPI.Comm,
        snapshot_frequency: int = 1,
    ):
        self.output_dir = Path(output_dir)
        self.global_shape = tuple(global_shape)
        self.local_shape = tuple(local_shape)
        self.offset = tuple(offset)
        self.comm = comm
        self.rank = comm.Get_rank()
        self.snapshot_frequency = snapshot_frequency
        self.written: list[Path] = []

        self._filetype = MPI.DOUBLE.Create_subarray(
            list(self.global_shape),
            list(self.local_shape),
            list(self.offset),
            order=MPI.ORDER_C,
        )
        self._filetype.Commit()

    def prepare(self):
        """Create the output directory on rank 0 and agree on the outcome."""
        error = None
        if self.rank == 0:
            try:
                self.output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                error = exc
        raise_if_any_failed(
            self.comm, error, CheckpointError, f"Creating {self.output_dir}"
        )

    def is_due(self, iteration: int) -> bool:
        return iteration % self.snapshot_frequency == 0

    def path_for(self, iteration: int) -> Path:
        return self.output_dir / checkpoint_name(iteration // self.snapshot_frequency)

    def write(self, arr: np.ndarray, iteration: int) -> Path:
        """Collectively write the interior of ``arr`` as the snapshot of ``iteration``.

        Raises
        ------
        CheckpointError
            On every rank, if opening, writing or closing failed on any rank.
        """
        path = self.path_for(iteration)
        part = path.with_name(path.name + ".part")
        interior = np.ascontiguousarray(arr[1:-1, 1:-1])

        self._write_part(part, interior)

        # All ranks closed the file; publish it under its final name
        error = None
        if self.rank == 0:
            try:
                os.replace(part, path)
            except OSError as exc:
                error = exc
        raise_if_any_failed(self.comm, error, CheckpointError, f"Publishing {path}")

        self.written.append(path)
        log.debug(f"Wrote checkpoint {path}")
        return path

    def _write_part(self, part: Path, interior: np.ndarray):
        """Open, write and close ``part``, agreeing on the outcome after each step.

        Every step is a collective call on the file, so no rank starts a step
        before all ranks agreed the previous one succeeded. The handle is
        closed on every rank whether or not the write went through.
        """
        fh, error = None, None
        try:
            fh = MPI.File.Open(self.comm, str(part), MPI.MODE_WRONLY | MPI.MODE_CREATE)
        except MPI.Exception as exc:
            error = exc
        raise_if_any_failed(self.comm, error, CheckpointError, f"Opening {part}")

        try:
            for what, step in self._write_steps(fh, interior):
                error = None
                try:
                    step()
                except MPI.Exception as exc:
                    error = exc
                raise_if_any_failed(self.comm, error, CheckpointError, f"{what} {part}")
        finally:
            error = self._close(fh)

        raise_if_any_failed(self.comm, error, CheckpointError, f"Closing {part}")

    def _write_steps(self, fh: MPI.File, interior: np.ndarray) -> list:
        """(description, collective call) pairs of one snapshot write, in order."""
        return [
            ("Truncating", lambda: fh.Set_size(0)),
            ("Setting view of", lambda: fh.Set_view(0, MPI.DOUBLE, self._filetype)),
            ("Writing", lambda: fh.Write_all(interior)),
        ]

    @staticmethod
    def _close(fh: MPI.File) -> Optional[BaseException]:
        try:
            fh.Close()
        except MPI.Exception as exc:
            log.error(f"Closing checkpoint file failed: {exc}")
            return exc
        return None

    def free(self):
        """Release the MPI file datatype."""
        if self._filetype != MPI.DATATYPE_NULL:
            self._filetype.Free()
