"""Codec and bookkeeping helpers shared by the batch operations."""

from imgbatch.image_engine.decoder import (
    CorruptImageError,
    DecodeError,
    EncodeError,
    ImageCodec,
    PyvipsCodec,
    UnsupportedFormatError,
    as_rgba,
    decode_file,
)
from imgbatch.image_engine.metrics import metrics

__all__ = [
    "CorruptImageError",
    "DecodeError",
    "EncodeError",
    "ImageCodec",
    "PyvipsCodec",
    "UnsupportedFormatError",
    "as_rgba",
    "decode_file",
    "metrics",
]
