"""Volume-to-series conversion: extraction, tagging, encoding."""

from vol2dcm.series.encoder import PydicomEncoder, SliceEncoder
from vol2dcm.series.extract import extract_cross_section, slice_position
from vol2dcm.series.tags import TagDictionaryBuilder, pixel_encoding
from vol2dcm.series.uids import SequenceAllocator, UIDAllocator
from vol2dcm.series.writer import SeriesWriter, convert_volume

__all__ = [
    "PydicomEncoder",
    "SequenceAllocator",
    "SeriesWriter",
    "SliceEncoder",
    "TagDictionaryBuilder",
    "UIDAllocator",
    "convert_volume",
    "extract_cross_section",
    "pixel_encoding",
    "slice_position",
]
