"""vol2dcm: convert 3D medical image volumes into 2D DICOM series."""

__version__ = "0.1.0"
