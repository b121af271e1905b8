"""MIG and NCC displacement metrics for laser decorrelation test images."""

__version__ = "0.1.0"
