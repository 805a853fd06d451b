"""Startup configuration: validation and broadcast from a single rank."""

from __future__ import annotations

import logging
from dataclasses import fields
from typing import Any, Callable, Mapping

from mpi4py import MPI

from .datastructures import GlobalParams
from .errors import ConfigurationError

log = logging.getLogger(__name__)

_REQUIRED = ("M", "N", "max_iteration", "snapshot_frequency")
_HALO_EXCHANGES = ("numpy", "custom")


def load_params(config: Mapping[str, Any]) -> GlobalParams:
    """Build and validate run parameters from a flat mapping.

    Unknown keys (e.g. Hydra's ``mlflow`` section) are ignored.

    Raises
    ------
    ConfigurationError
        If a required key is missing or a value is out of range.
    """
    missing = [k for k in _REQUIRED if config.get(k) is None]
    if missing:
        raise ConfigurationError(f"Missing startup parameter(s): {', '.join(missing)}")

    known = {f.name for f in fields(GlobalParams) if f.init}
    kwargs = {k: v for k, v in config.items() if k in known and v is not None}

    try:
        for key in ("M", "N", "max_iteration", "snapshot_frequency", "n_ranks"):
            if key in kwargs:
                kwargs[key] = _as_int(key, kwargs[key])
        if "dt" in kwargs:
            kwargs["dt"] = float(kwargs["dt"])
        if "use_numba" in kwargs:
            kwargs["use_numba"] = _as_bool(kwargs["use_numba"])
        for key in ("output_dir", "halo_exchange", "experiment_name"):
            if key in kwargs:
                kwargs[key] = str(kwargs[key])
    except (TypeError, ValueError, OverflowError) as exc:
        raise ConfigurationError(str(exc)) from exc

    params = GlobalParams(**kwargs)
    validate_params(params)
    return params


def validate_params(params: GlobalParams):
    """Range checks that do not depend on the process count."""
    if params.M < 2 or params.N < 2:
        raise ConfigurationError(f"Grid must be at least 2x2, got {params.M}x{params.N}")
    if params.max_iteration < 0:
        raise ConfigurationError(f"max_iteration must be >= 0, got {params.max_iteration}")
    if params.snapshot_frequency < 1:
        raise ConfigurationError(
            f"snapshot_frequency must be >= 1, got {params.snapshot_frequency}"
        )
    if not params.dt > 0:
        raise ConfigurationError(f"dt must be positive, got {params.dt}")
    if params.halo_exchange not in _HALO_EXCHANGES:
        raise ConfigurationError(
            f"Unknown halo_exchange '{params.halo_exchange}'. Use {_HALO_EXCHANGES}."
        )


def broadcast_params(
    comm: MPI.Comm, parse: Callable[[], Any], root: int = 0
) -> Any:
    """Parse on ``root`` only and broadcast the result to every rank.

    The root broadcasts either the parameters or the error message, so a
    parse failure raises ConfigurationError on all ranks instead of leaving
    the others waiting in the next collective call.
    """
    payload, cause = None, None
    if comm.Get_rank() == root:
        try:
            payload = (parse(), None)
        except ConfigurationError as exc:
            log.error(f"Invalid configuration: {exc}")
            payload, cause = (None, str(exc)), exc
        except Exception as exc:
            # Any other parser failure must still reach the bcast
            log.error(f"Could not parse configuration: {exc!r}")
            payload, cause = (None, f"{type(exc).__name__}: {exc}"), exc

    params, error = comm.bcast(payload, root=root)
    if error is not None:
        raise ConfigurationError(error) from cause
    return params


def _as_int(key, value) -> int:
    if isinstance(value, bool) or int(value) != float(value):
        raise ValueError(f"{key} must be an integer, got {value!r}")
    return int(value)


def _as_bool(value) -> bool:
    if isinstance(value, str):
        if value.lower() in ("true", "1", "yes"):
            return True
        if value.lower() in ("false", "0", "no"):
            return False
        raise ValueError(f"Not a boolean: {value!r}")
    return bool(value)
