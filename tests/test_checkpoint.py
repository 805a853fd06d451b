"""Tests for collective MPI-IO checkpoints (single rank)."""

import os

import numpy as np
import pytest
from mpi4py import MPI
from Heat import CheckpointError, CheckpointWriter, Field, checkpoint_name, global_initial_temperature


def make_writer(output_dir, M=8, N=8, freq=1):
    writer = CheckpointWriter(
        output_dir,
        global_shape=(M, N),
        local_shape=(M, N),
        offset=(0, 0),
        comm=MPI.COMM_SELF,
        snapshot_frequency=freq,
    )
    writer.prepare()
    return writer


def initial_field(M=8, N=8):
    field = Field((M, N))
    field.initialize((0, 0), N)
    return field


def test_checkpoint_name():
    assert checkpoint_name(0) == "00000.bin"
    assert checkpoint_name(42) == "00042.bin"
    assert checkpoint_name(12345) == "12345.bin"


def test_write_initial_condition(tmp_path):
    """8x8 snapshot is 512 bytes of row-major float64, halos stripped."""
    writer = make_writer(tmp_path / "data")
    path = writer.write(initial_field().current, iteration=0)
    writer.free()

    assert path == tmp_path / "data" / "00000.bin"
    assert path.stat().st_size == 8 * 8 * 8
    u = np.fromfile(path, dtype=np.float64).reshape(8, 8)
    assert np.array_equal(u, global_initial_temperature(8, 8))
    assert writer.written == [path]


def test_no_part_file_left(tmp_path):
    writer = make_writer(tmp_path)
    writer.write(initial_field().current, iteration=0)
    writer.free()

    assert sorted(os.listdir(tmp_path)) == ["00000.bin"]


def test_index_from_frequency(tmp_path):
    """Snapshot index is iteration // snapshot_frequency."""
    writer = make_writer(tmp_path, freq=10)
    assert writer.is_due(0) and writer.is_due(20)
    assert not writer.is_due(5)
    assert writer.path_for(30).name == "00003.bin"

    writer.write(initial_field().current, iteration=20)
    writer.free()
    assert (tmp_path / "00002.bin").exists()


def test_existing_file_truncated(tmp_path):
    """A larger stale file from an earlier run is fully replaced."""
    (tmp_path / "00000.bin").write_bytes(b"\xff" * 4096)
    (tmp_path / "00000.bin.part").write_bytes(b"\xff" * 4096)

    writer = make_writer(tmp_path)
    path = writer.write(initial_field().current, iteration=0)
    writer.free()

    assert path.stat().st_size == 512


def test_rectangular_block_offset(tmp_path):
    """A block written at an offset lands in its rows and columns only."""
    M, N = 4, 6
    writer = CheckpointWriter(
        tmp_path, (M, N), local_shape=(2, 3), offset=(2, 3), comm=MPI.COMM_SELF
    )
    arr = np.full((4, 5), 7.0)
    path = writer.write(arr, iteration=0)
    writer.free()

    u = np.fromfile(path, dtype=np.float64).reshape(M, N)
    assert np.all(u[2:, 3:] == 7.0)
    assert np.all(u[:2, :] == 0.0)
    assert np.all(u[:, :3] == 0.0)


def test_prepare_creates_nested_directory(tmp_path):
    writer = make_writer(tmp_path / "a" / "b")
    writer.free()
    assert (tmp_path / "a" / "b").is_dir()


def test_unwritable_directory_raises(tmp_path):
    """Output path below a regular file cannot be created."""
    blocker = tmp_path / "file"
    blocker.write_text("x")

    writer = CheckpointWriter(
        blocker / "data", (8, 8), (8, 8), (0, 0), comm=MPI.COMM_SELF
    )
    with pytest.raises(CheckpointError):
        writer.prepare()
    with pytest.raises(CheckpointError):
        writer.write(initial_field().current, iteration=0)
    writer.free()


def test_checkpoint_error_is_os_error():
    assert issubclass(CheckpointError, OSError)


class FailingStepWriter(CheckpointWriter):
    """Writer whose ``Set_view`` call reports an MPI I/O error."""

    def _write_steps(self, fh, interior):
        self.handle = fh
        steps = super()._write_steps(fh, interior)

        def set_view_then_fail():
            fh.Set_view(0, MPI.DOUBLE, self._filetype)
            raise MPI.Exception(MPI.ERR_IO)

        return [steps[0], ("Setting view of", set_view_then_fail), steps[2]]


def test_failed_step_closes_file_and_raises(tmp_path):
    """A failure after the open still closes the handle and publishes nothing."""
    writer = FailingStepWriter(tmp_path, (8, 8), (8, 8), (0, 0), comm=MPI.COMM_SELF)
    writer.prepare()

    with pytest.raises(CheckpointError, match="Setting view"):
        writer.write(initial_field().current, iteration=0)

    assert writer.handle == MPI.FILE_NULL
    assert not (tmp_path / "00000.bin").exists()
    assert writer.written == []
    writer.free()
