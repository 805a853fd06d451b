"""MPI worker - invoked via: mpiexec -n X python -m Heat.helpers.runner_helper '{config}'

Rank 0 parses the JSON config and broadcasts the validated parameters. Any
fatal solver error aborts the whole MPI job.
"""

import json
import logging
import sys

from mpi4py import MPI

from Heat.config import broadcast_params, load_params
from Heat.errors import ConfigurationError, HeatError
from Heat.solver import HeatSolver

log = logging.getLogger("Heat.runner_helper")


def _parse_argv():
    """Parse the JSON config given on the command line (rank 0 only)."""
    if len(sys.argv) < 2:
        raise ConfigurationError("Usage: runner_helper '<json config>'")
    try:
        config = json.loads(sys.argv[1])
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Config is not valid JSON: {exc}") from exc
    if not isinstance(config, dict):
        raise ConfigurationError(
            f"Config must be a JSON object, got {type(config).__name__}"
        )
    return load_params(config), config.get("output")


def main(comm):
    rank = comm.Get_rank()
    logging.basicConfig(
        level=logging.INFO, format=f"[%(levelname)s] rank {rank}: %(message)s"
    )

    params, output = broadcast_params(comm, _parse_argv)

    solver = HeatSolver(params, comm)
    solver.warmup()
    solver.solve()

    if output:
        solver.save_hdf5(output)
    solver.close()

    if rank == 0:
        # Just print the path - runner.py will load the HDF5
        print(f"RESULT:{output}")


if __name__ == "__main__":
    comm = MPI.COMM_WORLD
    try:
        main(comm)
    except HeatError as exc:
        log.error(f"Fatal: {exc}")
        comm.Abort(1)
