"""Shared test fixtures: synthetic volumes and recording encoders."""

from __future__ import annotations

import threading

import numpy as np
import pytest

from vol2dcm.core.volume import Volume
from vol2dcm.series.uids import SequenceAllocator


@pytest.fixture
def small_volume() -> Volume:
    """4x4x3 single-channel uint16 volume, spacing (1, 1, 5), identity direction."""
    voxels = np.arange(3 * 4 * 4, dtype=np.uint16).reshape(3, 4, 4)
    return Volume.from_array(voxels, spacing=(1.0, 1.0, 5.0))


@pytest.fixture
def signed_volume() -> Volume:
    """5x6x4 int16 volume with negative values and a shifted origin."""
    rng = np.random.default_rng(0)
    voxels = rng.integers(-1024, 3000, size=(4, 6, 5), dtype=np.int16)
    return Volume.from_array(
        voxels,
        spacing=(0.5, 0.75, 2.5),
        origin=(-10.5, 20.25, 3.0),
    )


@pytest.fixture
def rgb_volume() -> Volume:
    """4x3x2 uint8 RGB volume."""
    voxels = np.arange(2 * 3 * 4 * 3, dtype=np.uint8).reshape(2, 3, 4, 3)
    return Volume.from_array(voxels)


@pytest.fixture
def float_volume() -> Volume:
    voxels = np.linspace(-10.0, 70000.0, 2 * 3 * 3, dtype=np.float32).reshape(2, 3, 3)
    return Volume.from_array(voxels)


@pytest.fixture
def allocator() -> SequenceAllocator:
    return SequenceAllocator()


class RecordingEncoder:
    """Encoder stand-in that records calls and optionally fails on one slice."""

    def __init__(self, fail_on: int | None = None):
        self.fail_on = fail_on
        self.calls: list[int] = []
        self.datasets = {}
        self._lock = threading.Lock()

    def encode(self, cross_section, dataset, *, use_compression=False) -> bytes:
        with self._lock:
            self.calls.append(cross_section.index)
            self.datasets[cross_section.index] = dataset
        if cross_section.index == self.fail_on:
            raise RuntimeError(f"encoder rejected slice {cross_section.index}")
        return f"slice-{cross_section.index}".encode()


@pytest.fixture
def recording_encoder() -> RecordingEncoder:
    return RecordingEncoder()


@pytest.fixture
def make_encoder():
    """Factory for encoders that fail on a chosen slice."""
    return RecordingEncoder
