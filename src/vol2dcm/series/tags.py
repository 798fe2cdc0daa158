"""Per-slice DICOM attribute assembly."""

from __future__ import annotations

import copy
from datetime import datetime

from pydicom.dataset import Dataset
from pydicom.uid import (
    CTImageStorage,
    MRImageStorage,
    PositronEmissionTomographyImageStorage,
    SecondaryCaptureImageStorage,
    UltrasoundImageStorage,
    XRayAngiographicImageStorage,
)
from pydicom.valuerep import format_number_as_ds

from vol2dcm.core.errors import EncodingError
from vol2dcm.core.types import ComponentType, ConversionOptions, Modality, PixelEncoding
from vol2dcm.core.volume import CrossSection
from vol2dcm.series.uids import UIDAllocator

_PIXEL_ENCODINGS: dict[ComponentType, PixelEncoding] = {
    ComponentType.INT8: PixelEncoding(8, True, "OB"),
    ComponentType.UINT8: PixelEncoding(8, False, "OB"),
    ComponentType.INT16: PixelEncoding(16, True, "OW"),
    ComponentType.UINT16: PixelEncoding(16, False, "OW"),
    ComponentType.INT32: PixelEncoding(32, True, "OL"),
    ComponentType.UINT32: PixelEncoding(32, False, "OL"),
}

DEFAULT_PIXEL_ENCODING = PixelEncoding(16, False, "OW")

_SOP_CLASS_BY_MODALITY = {
    Modality.MR: MRImageStorage,
    Modality.CT: CTImageStorage,
    Modality.PT: PositronEmissionTomographyImageStorage,
    Modality.US: UltrasoundImageStorage,
    Modality.XA: XRayAngiographicImageStorage,
}

# Keywords replaced in diagnostic snapshots
_REDACTED_KEYWORDS = frozenset({
    "PatientName",
    "PatientID",
    "PatientBirthDate",
    "PatientAddress",
    "OtherPatientIDs",
    "OtherPatientNames",
    "ReferringPhysicianName",
    "InstitutionName",
    "AccessionNumber",
})


def pixel_encoding(component_type: ComponentType, strict: bool = False) -> PixelEncoding:
    """Look up the DICOM pixel encoding for a component kind.

    Kinds without a native DICOM encoding (64-bit and floating point) fall
    back to unsigned 16-bit unless ``strict`` is set.
    """
    encoding = _PIXEL_ENCODINGS.get(component_type)
    if encoding is not None:
        return encoding
    if strict:
        raise EncodingError(
            f"Component type {component_type.value} has no DICOM pixel encoding"
        )
    return DEFAULT_PIXEL_ENCODING


def is_natively_encoded(component_type: ComponentType) -> bool:
    return component_type in _PIXEL_ENCODINGS


def format_decimal(value: float) -> str:
    """Fixed 6-digit decimal string, checked against the 16-char DS limit."""
    text = f"{float(value):.6f}"
    if len(text) > 16:
        raise EncodingError(f"Value {value} does not fit a DICOM decimal string: {text}")
    return text


def _ds(value: float) -> str:
    return format_number_as_ds(float(value))


def _sop_class_for(modality: str | None) -> str:
    try:
        return _SOP_CLASS_BY_MODALITY.get(Modality(modality), SecondaryCaptureImageStorage)
    except ValueError:
        return SecondaryCaptureImageStorage


def dataset_snapshot(ds: Dataset) -> dict:
    """Redacted keyword -> string view of a dataset for error reports."""
    snapshot = {}
    for elem in ds:
        if elem.keyword == "PixelData":
            continue
        key = elem.keyword or str(elem.tag)
        snapshot[key] = "***" if elem.keyword in _REDACTED_KEYWORDS else str(elem.value)
    return snapshot


class TagDictionaryBuilder:
    """Builds the DICOM dataset for each slice of one conversion run.

    Series-wide values (series, study and frame-of-reference UIDs, wall-clock
    dates) are fixed when first needed and reused for every slice built by
    the same instance.
    """

    def __init__(self, allocator: UIDAllocator | None = None):
        self.allocator = allocator or UIDAllocator()
        self._series_uid: str | None = None
        self._study_uid: str | None = None
        self._frame_uid: str | None = None
        self._now = datetime.now()

    @property
    def series_uid(self) -> str:
        if self._series_uid is None:
            self._series_uid = self.allocator.new_series_uid()
        return self._series_uid

    @property
    def study_uid(self) -> str:
        if self._study_uid is None:
            self._study_uid = self.allocator.new_study_uid()
        return self._study_uid

    @property
    def frame_of_reference_uid(self) -> str:
        if self._frame_uid is None:
            self._frame_uid = self.allocator.new_frame_of_reference_uid()
        return self._frame_uid

    def build(
        self,
        base: Dataset | None,
        index: int,
        total_slices: int,
        cross_section: CrossSection,
        options: ConversionOptions,
    ) -> Dataset:
        """Assemble the dataset for slice ``index`` of ``total_slices``."""
        ds = copy.deepcopy(base) if base is not None else Dataset()

        if "SeriesInstanceUID" not in ds:
            ds.SeriesInstanceUID = options.series_instance_uid or self.series_uid
        ds.SOPInstanceUID = self.allocator.new_instance_uid()
        ds.InstanceNumber = index + options.instance_number_start

        ds.ImagePositionPatient = [format_decimal(v) for v in cross_section.position]
        ds.SliceLocation = format_decimal(cross_section.z_position)
        ds.ImagesInAcquisition = total_slices

        if options.series_description and "SeriesDescription" not in ds:
            ds.SeriesDescription = options.series_description
        if options.series_number is not None and "SeriesNumber" not in ds:
            ds.SeriesNumber = options.series_number
        if options.modality is not None and "Modality" not in ds:
            ds.Modality = options.modality.value

        self._set_defaults(ds)
        self._set_geometry(ds, cross_section)
        self._set_pixel_module(ds, cross_section, options.strict_encoding)
        return ds

    def _set_defaults(self, ds: Dataset) -> None:
        """Study/patient/equipment attributes, kept when the base has them."""
        if "SOPClassUID" not in ds:
            ds.SOPClassUID = _sop_class_for(ds.get("Modality"))
        if "StudyInstanceUID" not in ds:
            ds.StudyInstanceUID = self.study_uid
        if "FrameOfReferenceUID" not in ds:
            ds.FrameOfReferenceUID = self.frame_of_reference_uid

        date = self._now.strftime("%Y%m%d")
        time_ = self._now.strftime("%H%M%S")
        defaults = {
            "StudyDate": date,
            "StudyTime": time_,
            "SeriesDate": date,
            "SeriesTime": time_,
            "ContentDate": date,
            "ContentTime": time_,
            "PatientName": "Anonymous",
            "PatientID": "ANON123",
            "ImageType": ["DERIVED", "SECONDARY", "AXIAL"],
        }
        for keyword, value in defaults.items():
            if keyword not in ds:
                setattr(ds, keyword, value)

    def _set_geometry(self, ds: Dataset, cs: CrossSection) -> None:
        d = cs.direction
        # Row cosines first, then column cosines; no through-plane component
        ds.ImageOrientationPatient = [_ds(d[0]), _ds(d[1]), "0", _ds(d[2]), _ds(d[3]), "0"]
        # Row spacing (between rows) before column spacing
        ds.PixelSpacing = [_ds(cs.spacing[1]), _ds(cs.spacing[0])]

        through_plane = cs.slice_spacing
        if through_plane is not None:
            if "SliceThickness" not in ds:
                ds.SliceThickness = _ds(through_plane)
            if "SpacingBetweenSlices" not in ds:
                ds.SpacingBetweenSlices = _ds(through_plane)

    def _set_pixel_module(self, ds: Dataset, cs: CrossSection, strict: bool) -> None:
        encoding = pixel_encoding(cs.component_type, strict=strict)
        ds.SamplesPerPixel = cs.components_per_pixel
        if cs.components_per_pixel == 1:
            ds.PhotometricInterpretation = "MONOCHROME2"
            if "PlanarConfiguration" in ds:
                del ds.PlanarConfiguration
        else:
            ds.PhotometricInterpretation = "RGB"
            ds.PlanarConfiguration = 0
        ds.Rows = cs.rows
        ds.Columns = cs.columns
        ds.BitsAllocated = encoding.bits_allocated
        ds.BitsStored = encoding.bits_stored
        ds.HighBit = encoding.high_bit
        ds.PixelRepresentation = encoding.pixel_representation
