"""Run the heat solver via mpiexec subprocess."""

import json
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path


def mpiexec_available() -> bool:
    """True if an ``mpiexec`` launcher is on PATH."""
    return shutil.which("mpiexec") is not None


def mpi_env() -> dict:
    """Environment for spawned MPI jobs (lets Open MPI run as root/oversubscribed)."""
    env = os.environ.copy()
    env.setdefault("OMPI_ALLOW_RUN_AS_ROOT", "1")
    env.setdefault("OMPI_ALLOW_RUN_AS_ROOT_CONFIRM", "1")
    env.setdefault("OMPI_MCA_rmaps_base_oversubscribe", "1")
    env.setdefault("PRTE_MCA_rmaps_default_mapping_policy", ":oversubscribe")
    return env


def mpiexec_command(n_ranks: int, module: str, *args: str) -> list:
    """``mpiexec -n P python -m module args...`` with the current interpreter."""
    return ["mpiexec", "-n", str(n_ranks), sys.executable, "-m", module, *args]


def run_solver(M: int, N: int, n_ranks: int = 1, output: str = None, timeout: float = 300, **kwargs) -> dict:
    """Run solver on an M x N grid with n_ranks MPI processes.

    Parameters
    ----------
    M, N : int
        Global grid size (rows, columns)
    n_ranks : int
        Number of MPI ranks
    output : str, optional
        Path to save HDF5 results (uses temp file if not provided)
    **kwargs
        Extra options: max_iteration, snapshot_frequency, dt, output_dir,
        halo_exchange, use_numba

    Returns
    -------
    dict
        Results with config and metrics (or 'error' key on failure)
    """
    import pandas as pd

    # Use temp file if no output path specified
    use_temp = output is None
    if use_temp:
        tmp = tempfile.NamedTemporaryFile(suffix=".h5", delete=False)
        output = tmp.name
        tmp.close()

    config = {"M": M, "N": N, "n_ranks": n_ranks, "output": output, **kwargs}
    cmd = mpiexec_command(n_ranks, "Heat.helpers.runner_helper", json.dumps(config))

    proc = subprocess.run(cmd, capture_output=True, text=True, env=mpi_env(), timeout=timeout)

    if proc.returncode != 0:
        return {"error": proc.stderr or proc.stdout, "returncode": proc.returncode}

    # Load results from HDF5
    if not Path(output).exists() or Path(output).stat().st_size == 0:
        return {"error": "No output file created", "stderr": proc.stderr}

    result = pd.read_hdf(output, key="results").iloc[0].to_dict()

    # Clean up temp file if we created one
    if use_temp:
        Path(output).unlink(missing_ok=True)

    return result
