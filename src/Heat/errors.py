"""Error taxonomy for the heat solver.

Every failure is fatal for the whole run. Errors that only one rank can see
are made collective with :func:`raise_if_any_failed`, so that all ranks raise
the same exception type and the entry point can abort the group together.
"""

from __future__ import annotations

from typing import Optional, Type

from mpi4py import MPI


class HeatError(Exception):
    """Base class for all fatal solver errors."""


class ConfigurationError(HeatError, ValueError):
    """Invalid startup parameters or non-divisible domain/topology."""


class ResourceError(HeatError, MemoryError):
    """Field buffers could not be allocated."""


class CheckpointError(HeatError, OSError):
    """A checkpoint file could not be opened, written or finalised."""


class CommunicationError(HeatError, RuntimeError):
    """A halo transfer failed."""


def raise_if_any_failed(
    comm: MPI.Comm,
    error: Optional[BaseException],
    error_type: Type[HeatError],
    what: str,
) -> None:
    """Raise ``error_type`` on every rank if any rank passed an error.

    Parameters
    ----------
    comm : MPI.Comm
        Communicator over which failure is agreed.
    error : BaseException or None
        The local failure, if any.
    error_type : type
        Exception class raised on all ranks.
    what : str
        Short description of the failed operation, used in the message.
    """
    failed = comm.allgather(error is not None)
    if not any(failed):
        return

    ranks = [r for r, f in enumerate(failed) if f]
    if error is not None:
        raise error_type(f"{what} failed on rank(s) {ranks}: {error}") from error
    raise error_type(f"{what} failed on rank(s) {ranks}")
