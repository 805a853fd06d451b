"""Helper script for running MPI component tests.

Invoked via: mpiexec -n X python -m Heat.helpers.test_components_helper M N [numpy|custom]
Exits non-zero if any check failed on any rank.
"""

import shutil
import sys
import tempfile
from pathlib import Path

import numpy as np
from mpi4py import MPI

from Heat.errors import CheckpointError
from Heat.mpi import CheckpointWriter, DistributedGrid


def encode(rows, cols):
    """Unique value per global cell."""
    return rows * 10000.0 + cols


def check_halo_exchange(comm, M, N, halo_exchange):
    """Halo facing a neighbor must equal that neighbor's interior edge, bit for bit."""
    grid = DistributedGrid(M, N, comm, halo_exchange=halo_exchange)
    rows, cols = grid.local_shape
    r0, c0 = grid.offset

    u = np.full(grid.halo_shape, -1.0)
    Y, X = np.meshgrid(np.arange(r0, r0 + rows), np.arange(c0, c0 + cols), indexing="ij")
    u[1:-1, 1:-1] = encode(Y, X)
    interior_before = u[1:-1, 1:-1].copy()

    grid.sync_halos(u)

    ok = np.array_equal(u[1:-1, 1:-1], interior_before)
    gr = np.arange(r0, r0 + rows)
    gc = np.arange(c0, c0 + cols)
    expected = {
        "up": (u[0, 1:-1], encode(r0 - 1, gc)),
        "down": (u[-1, 1:-1], encode(r0 + rows, gc)),
        "left": (u[1:-1, 0], encode(gr, c0 - 1)),
        "right": (u[1:-1, -1], encode(gr, c0 + cols)),
    }
    for direction, (actual, want) in expected.items():
        if grid.neighbors[direction] is not None:
            ok &= np.array_equal(actual, want)
        else:
            # Global edge: untouched by the exchange
            ok &= bool(np.all(actual == -1.0))

    # Corners are never exchanged
    ok &= bool(np.all(u[[0, 0, -1, -1], [0, -1, 0, -1]] == -1.0))

    if not ok:
        print(f"Rank {comm.Get_rank()}: Halo Exchange Test FAILED ({halo_exchange})")
    return ok


def check_boundary_mirror(comm, M, N, halo_exchange):
    """After exchange + boundary, edge halos equal the interior two steps in."""
    grid = DistributedGrid(M, N, comm, halo_exchange=halo_exchange)
    field = grid.allocate_field()
    u = field.current

    grid.sync_halos(u)
    grid.apply_boundary_conditions(u)

    ok = True
    if grid.is_boundary["up"]:
        ok &= np.array_equal(u[0, 1:-1], u[2, 1:-1])
    if grid.is_boundary["down"]:
        ok &= np.array_equal(u[-1, 1:-1], u[-3, 1:-1])
    if grid.is_boundary["left"]:
        ok &= np.array_equal(u[1:-1, 0], u[1:-1, 2])
    if grid.is_boundary["right"]:
        ok &= np.array_equal(u[1:-1, -1], u[1:-1, -3])

    if not ok:
        print(f"Rank {comm.Get_rank()}: Boundary Mirror Test FAILED ({halo_exchange})")
    return ok


class _LastRankFailsWriter(CheckpointWriter):
    """Writer whose Write_all reports an I/O error on the highest rank only."""

    def _write_steps(self, fh, interior):
        self.handle = fh
        steps = super()._write_steps(fh, interior)
        if self.rank != self.comm.Get_size() - 1:
            return steps

        def write_then_fail():
            fh.Write_all(interior)
            raise MPI.Exception(MPI.ERR_IO)

        return steps[:2] + [("Writing", write_then_fail)]


def check_checkpoint_failure(comm, M, N):
    """An I/O error on one rank must raise CheckpointError on all, not hang."""
    grid = DistributedGrid(M, N, comm)
    field = grid.allocate_field()
    rank = grid.cart_comm.Get_rank()

    output_dir = tempfile.mkdtemp(prefix="heat-ckpt-") if rank == 0 else None
    output_dir = grid.cart_comm.bcast(output_dir, root=0)
    writer = _LastRankFailsWriter(
        output_dir, (M, N), grid.local_shape, grid.offset, grid.cart_comm
    )

    ok = False
    try:
        writer.write(field.current, iteration=0)
    except CheckpointError:
        ok = True
    ok &= writer.handle == MPI.FILE_NULL
    writer.free()

    grid.cart_comm.Barrier()
    if rank == 0:
        ok &= not (Path(output_dir) / "00000.bin").exists()
        shutil.rmtree(output_dir)

    if not ok:
        print(f"Rank {rank}: Checkpoint Failure Test FAILED")
    return ok


if __name__ == "__main__":
    comm = MPI.COMM_WORLD
    M, N = int(sys.argv[1]), int(sys.argv[2])
    halo_exchange = sys.argv[3] if len(sys.argv) > 3 else "numpy"

    ok = check_halo_exchange(comm, M, N, halo_exchange)
    ok &= check_boundary_mirror(comm, M, N, halo_exchange)
    ok &= check_checkpoint_failure(comm, M, N)

    all_ok = comm.allreduce(int(ok), op=MPI.MIN) == 1
    if comm.Get_rank() == 0:
        print("PASSED" if all_ok else "FAILED")
    sys.exit(0 if all_ok else 1)
