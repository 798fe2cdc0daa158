"""Integration test: convert a volume and reassemble it from the written series."""

from __future__ import annotations

import random

import numpy as np
import pytest

from vol2dcm.core.errors import ValidationError
from vol2dcm.core.types import ConversionOptions
from vol2dcm.io.series_reader import read_series
from vol2dcm.series.writer import convert_volume


def test_roundtrip_uint16(small_volume):
    results = convert_volume(small_volume)
    restored = read_series(results)
    np.testing.assert_array_equal(restored.voxels, small_volume.voxels)
    assert restored.spacing == pytest.approx(small_volume.spacing)
    assert restored.origin == pytest.approx(small_volume.origin)
    assert restored.direction == pytest.approx(small_volume.direction)


def test_roundtrip_signed_with_origin(signed_volume):
    results = convert_volume(signed_volume, ConversionOptions(modality="CT"))
    restored = read_series(results)
    assert restored.component_type == signed_volume.component_type
    np.testing.assert_array_equal(restored.voxels, signed_volume.voxels)
    assert restored.spacing == pytest.approx((0.5, 0.75, 2.5))
    assert restored.origin == pytest.approx((-10.5, 20.25, 3.0))


def test_roundtrip_shuffled_files(tmp_path, signed_volume):
    results = convert_volume(signed_volume)
    paths = []
    for r in results:
        path = tmp_path / r.filename
        path.write_bytes(r.data)
        paths.append(path)
    random.Random(1).shuffle(paths)
    restored = read_series(paths)
    np.testing.assert_array_equal(restored.voxels, signed_volume.voxels)


def test_roundtrip_rgb(rgb_volume):
    restored = read_series(convert_volume(rgb_volume))
    assert restored.components_per_pixel == 3
    np.testing.assert_array_equal(restored.voxels, rgb_volume.voxels)


def test_roundtrip_parallel(signed_volume):
    results = convert_volume(signed_volume, ConversionOptions(workers=3))
    restored = read_series(results)
    np.testing.assert_array_equal(restored.voxels, signed_volume.voxels)


def test_read_series_rejects_mixed_series(small_volume):
    a = convert_volume(small_volume)
    b = convert_volume(small_volume)
    with pytest.raises(ValidationError, match="different series"):
        read_series([a[0], b[1]])


def test_read_series_rejects_empty():
    with pytest.raises(ValidationError, match="No DICOM"):
        read_series([])


def test_read_series_rejects_garbage():
    with pytest.raises(ValidationError, match="Not a DICOM"):
        read_series([b"not a dicom file"])
