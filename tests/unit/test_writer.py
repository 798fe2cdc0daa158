"""Unit tests for series conversion orchestration."""

from __future__ import annotations

import io

import numpy as np
import pydicom
import pytest
from pydicom.dataset import Dataset

from vol2dcm.core.errors import EncodingError, RangeError, SliceConversionError, ValidationError
from vol2dcm.core.types import ConversionOptions
from vol2dcm.core.volume import Volume
from vol2dcm.series.writer import SeriesWriter, convert_volume


def _datasets(results):
    return [pydicom.dcmread(io.BytesIO(r.data)) for r in results]


def test_convert_small_volume(small_volume):
    results = convert_volume(small_volume, ConversionOptions(filename_pattern="slice_%04d.dcm"))
    assert len(results) == 3
    assert [r.filename for r in results] == [
        "slice_0000.dcm",
        "slice_0001.dcm",
        "slice_0002.dcm",
    ]
    assert [r.slice_index for r in results] == [0, 1, 2]
    datasets = _datasets(results)
    assert [float(ds.SliceLocation) for ds in datasets] == [0.0, 5.0, 10.0]
    assert [float(ds.ImagePositionPatient[2]) for ds in datasets] == [0.0, 5.0, 10.0]


def test_series_uid_shared_instance_uids_distinct(small_volume):
    datasets = _datasets(convert_volume(small_volume))
    assert len({ds.SeriesInstanceUID for ds in datasets}) == 1
    assert len({ds.SOPInstanceUID for ds in datasets}) == 3
    assert len({ds.StudyInstanceUID for ds in datasets}) == 1


def test_instance_numbers_from_start(small_volume):
    datasets = _datasets(convert_volume(small_volume, ConversionOptions(instance_number_start=5)))
    assert [ds.InstanceNumber for ds in datasets] == [5, 6, 7]
    assert all(ds.ImagesInAcquisition == 3 for ds in datasets)


def test_series_uid_override(small_volume):
    opts = ConversionOptions(series_instance_uid="1.2.826.0.1.3680043.8.498.42")
    datasets = _datasets(convert_volume(small_volume, opts))
    assert {ds.SeriesInstanceUID for ds in datasets} == {"1.2.826.0.1.3680043.8.498.42"}


def test_base_dataset_passthrough(small_volume):
    base = Dataset()
    base.PatientName = "Doe^Jane"
    base.InstitutionName = "General Hospital"
    datasets = _datasets(convert_volume(small_volume, base=base))
    assert all(ds.PatientName == "Doe^Jane" for ds in datasets)
    assert all(ds.InstitutionName == "General Hospital" for ds in datasets)


def test_two_dimensional_volume_rejected_before_any_slice(make_encoder):
    vol = Volume(
        size=(4, 4),
        spacing=(1, 1),
        origin=(0, 0),
        direction=(1, 0, 0, 1),
        data=np.zeros(16, dtype=np.uint16),
    )
    encoder = make_encoder()
    with pytest.raises(ValidationError, match="3D"):
        convert_volume(vol, encoder=encoder)
    assert encoder.calls == []


def test_encoder_failure_aborts_run(small_volume, make_encoder):
    encoder = make_encoder(fail_on=1)
    with pytest.raises(SliceConversionError) as exc_info:
        convert_volume(small_volume, encoder=encoder)
    err = exc_info.value
    assert err.slice_index == 1
    assert isinstance(err.__cause__, RuntimeError)
    assert err.snapshot["InstanceNumber"] == "2"
    assert err.snapshot["PatientName"] == "***"
    # Fail-fast: slice 2 is never attempted
    assert encoder.calls == [0, 1]


def test_extraction_failure_has_no_snapshot(small_volume, monkeypatch, make_encoder):
    import vol2dcm.series.writer as writer_module

    def broken_extract(volume, index):
        raise RangeError(f"bad index {index}")

    monkeypatch.setattr(writer_module, "extract_cross_section", broken_extract)
    with pytest.raises(SliceConversionError) as exc_info:
        convert_volume(small_volume, encoder=make_encoder())
    assert exc_info.value.slice_index == 0
    assert exc_info.value.snapshot is None


def test_strict_float_volume_fails(float_volume):
    with pytest.raises(SliceConversionError, match="no DICOM pixel encoding"):
        convert_volume(float_volume, ConversionOptions(strict_encoding=True))


def test_recording_encoder_receives_ordered_slices(small_volume, recording_encoder, allocator):
    results = convert_volume(small_volume, encoder=recording_encoder, allocator=allocator)
    assert recording_encoder.calls == [0, 1, 2]
    assert [r.data for r in results] == [b"slice-0", b"slice-1", b"slice-2"]
    series = {ds.SeriesInstanceUID for ds in recording_encoder.datasets.values()}
    assert series == {"1.2.3.1"}


def test_parallel_results_ordered(make_encoder):
    voxels = np.arange(12 * 3 * 3, dtype=np.uint16).reshape(12, 3, 3)
    vol = Volume.from_array(voxels, spacing=(1.0, 1.0, 2.0))
    encoder = make_encoder()
    results = convert_volume(vol, ConversionOptions(workers=4), encoder=encoder)
    assert [r.slice_index for r in results] == list(range(12))
    assert [r.filename for r in results] == [f"slice_{i:04d}.dcm" for i in range(12)]
    datasets = [encoder.datasets[i] for i in range(12)]
    assert len({ds.SeriesInstanceUID for ds in datasets}) == 1
    assert len({ds.SOPInstanceUID for ds in datasets}) == 12
    assert len({ds.StudyInstanceUID for ds in datasets}) == 1
    assert [ds.InstanceNumber for ds in datasets] == list(range(1, 13))


def test_parallel_failure_raises(make_encoder):
    voxels = np.zeros((8, 2, 2), dtype=np.uint8)
    vol = Volume.from_array(voxels)
    with pytest.raises(SliceConversionError) as exc_info:
        convert_volume(vol, ConversionOptions(workers=3), encoder=make_encoder(fail_on=5))
    assert exc_info.value.slice_index == 5


def test_each_run_gets_fresh_series_uids(small_volume, allocator, make_encoder):
    writer = SeriesWriter(encoder=make_encoder(), allocator=allocator)
    writer.convert(small_volume)
    first = writer.encoder.datasets[0]
    writer.encoder = make_encoder()
    writer.convert(small_volume)
    second = writer.encoder.datasets[0]
    assert second.SeriesInstanceUID != first.SeriesInstanceUID
    assert second.StudyInstanceUID != first.StudyInstanceUID
    series = {ds.SeriesInstanceUID for ds in writer.encoder.datasets.values()}
    assert series == {second.SeriesInstanceUID}


def test_series_uid_override_applies_to_every_run(small_volume, make_encoder):
    opts = ConversionOptions(series_instance_uid="1.2.826.0.1.3680043.8.498.7")
    writer = SeriesWriter(opts, encoder=make_encoder())
    writer.convert(small_volume)
    writer.convert(small_volume)
    assert writer.encoder.datasets[0].SeriesInstanceUID == "1.2.826.0.1.3680043.8.498.7"


@pytest.mark.parametrize("dtype", [np.int32, np.uint32])
def test_compression_of_32bit_rejected_before_any_slice(dtype, make_encoder):
    vol = Volume.from_array(np.zeros((3, 4, 5), dtype=dtype))
    encoder = make_encoder()
    with pytest.raises(EncodingError, match="RLE Lossless does not support 32-bit"):
        convert_volume(vol, ConversionOptions(use_compression=True), encoder=encoder)
    assert encoder.calls == []


def test_32bit_without_compression_converts(make_encoder):
    vol = Volume.from_array(np.zeros((3, 4, 5), dtype=np.uint32))
    results = convert_volume(vol, encoder=make_encoder())
    assert len(results) == 3
