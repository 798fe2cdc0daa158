"""Series conversion: drives extraction, tagging and encoding for every slice."""

from __future__ import annotations

import concurrent.futures
import dataclasses
import logging
import time

from pydicom.dataset import Dataset

from vol2dcm.core.errors import SliceConversionError, ValidationError
from vol2dcm.core.types import ConversionOptions, EncodedSlice, SliceOutcome
from vol2dcm.core.volume import Volume
from vol2dcm.series.encoder import PydicomEncoder, SliceEncoder, check_compressible
from vol2dcm.series.extract import extract_cross_section
from vol2dcm.series.tags import (
    TagDictionaryBuilder,
    dataset_snapshot,
    is_natively_encoded,
    pixel_encoding,
)
from vol2dcm.series.uids import UIDAllocator

logger = logging.getLogger("vol2dcm")

_LOG_EVERY = 10


class SeriesWriter:
    """Converts a 3D volume into an ordered list of encoded DICOM slices.

    Each :meth:`convert` call writes a new series: series, study and
    frame-of-reference UIDs are allocated once per call (unless overridden
    by the options or the base dataset) and shared by its slices.
    """

    def __init__(
        self,
        options: ConversionOptions | None = None,
        base: Dataset | None = None,
        encoder: SliceEncoder | None = None,
        allocator: UIDAllocator | None = None,
    ):
        self.options = options or ConversionOptions()
        self.base = base
        self.encoder = encoder or PydicomEncoder()
        self.allocator = allocator or UIDAllocator()
        self.builder: TagDictionaryBuilder | None = None

    def convert(self, volume: Volume) -> list[EncodedSlice]:
        """Convert every slice, in slice order, or raise on the first failure.

        Raises:
            ValidationError: if the volume is not 3-dimensional.
            EncodingError: if compression is requested for a pixel width
                RLE Lossless cannot encode.
            SliceConversionError: if any slice fails; no partial result is
                returned.
        """
        if volume.dimension != 3:
            raise ValidationError(
                f"Input image must be 3D, got {volume.dimension}D"
            )

        if self.options.use_compression:
            check_compressible(pixel_encoding(volume.component_type))

        # Fix series-wide UIDs before any slice (or worker) starts
        self.builder = TagDictionaryBuilder(self.allocator)
        series_uid = self.options.series_instance_uid or self.builder.series_uid
        options = dataclasses.replace(self.options, series_instance_uid=series_uid)
        _ = self.builder.study_uid, self.builder.frame_of_reference_uid

        num_slices = volume.size[2]
        if not is_natively_encoded(volume.component_type):
            if options.strict_encoding:
                logger.debug(f"{volume.component_type.value} pixels will be rejected (strict)")
            else:
                logger.warning(
                    f"{volume.component_type.value} pixels have no native DICOM encoding; "
                    f"values will be rounded and clipped to 16-bit unsigned"
                )

        start_time = time.time()
        logger.info(f"Writing {num_slices} slices (series {series_uid})...")

        if options.workers > 1 and num_slices > 1:
            outcomes = self._convert_parallel(volume, options, num_slices)
        else:
            outcomes = self._convert_sequential(volume, options, num_slices)

        results = [outcome.result for outcome in sorted(outcomes, key=lambda o: o.slice_index)]
        logger.info(f"Wrote {num_slices} slices in {time.time() - start_time:.1f}s")
        return results

    def _convert_sequential(
        self, volume: Volume, options: ConversionOptions, num_slices: int
    ) -> list[SliceOutcome]:
        outcomes = []
        for index in range(num_slices):
            outcome = self._convert_slice(volume, index, num_slices, options)
            if not outcome.ok:
                self._abort(outcome)
            outcomes.append(outcome)
            self._log_progress(len(outcomes), num_slices)
        return outcomes

    def _convert_parallel(
        self, volume: Volume, options: ConversionOptions, num_slices: int
    ) -> list[SliceOutcome]:
        outcomes = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=options.workers) as executor:
            futures = [
                executor.submit(self._convert_slice, volume, index, num_slices, options)
                for index in range(num_slices)
            ]
            try:
                for future in concurrent.futures.as_completed(futures):
                    outcome = future.result()
                    if not outcome.ok:
                        self._abort(outcome)
                    outcomes.append(outcome)
                    self._log_progress(len(outcomes), num_slices)
            except SliceConversionError:
                for future in futures:
                    future.cancel()
                raise
        return outcomes

    def _convert_slice(
        self,
        volume: Volume,
        index: int,
        num_slices: int,
        options: ConversionOptions,
    ) -> SliceOutcome:
        """Run one slice through extract -> tag -> encode, capturing failures."""
        dataset = None
        try:
            cross_section = extract_cross_section(volume, index)
            dataset = self.builder.build(self.base, index, num_slices, cross_section, options)
            data = self.encoder.encode(
                cross_section, dataset, use_compression=options.use_compression
            )
        except Exception as e:
            snapshot = dataset_snapshot(dataset) if dataset is not None else None
            return SliceOutcome(slice_index=index, error=e, snapshot=snapshot)

        logger.debug(f"Slice {index}: z={cross_section.z_position:.6f}")
        result = EncodedSlice(
            filename=options.filename_for(index),
            data=data,
            slice_index=index,
        )
        return SliceOutcome(slice_index=index, result=result)

    def _abort(self, outcome: SliceOutcome) -> None:
        logger.error(f"Error writing slice {outcome.slice_index}: {outcome.error}")
        raise SliceConversionError(
            outcome.slice_index, outcome.snapshot, outcome.error
        ) from outcome.error

    @staticmethod
    def _log_progress(done: int, total: int) -> None:
        if done % _LOG_EVERY == 0 or done == total:
            logger.info(f"Wrote {done}/{total} slices")


def convert_volume(
    volume: Volume,
    options: ConversionOptions | None = None,
    *,
    base: Dataset | None = None,
    encoder: SliceEncoder | None = None,
    allocator: UIDAllocator | None = None,
) -> list[EncodedSlice]:
    """Convert a 3D volume into an ordered DICOM series.

    Returns one :class:`EncodedSlice` per slice, ordered by slice index, with
    filenames built from ``options.filename_pattern``.
    """
    writer = SeriesWriter(options, base=base, encoder=encoder, allocator=allocator)
    return writer.convert(volume)
