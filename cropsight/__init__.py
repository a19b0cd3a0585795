"""CropSight: multimodal plant diagnosis and identification."""

__version__ = "1.0.0"
