"""Pytest configuration.

`BatchWorker` is a QObject. Signals work without a running event loop for
direct connections, but a QCoreApplication must exist before QObjects are
created on some platforms, so one is created for the whole session.

The `fake_codec` fixture stands in for libvips: its "encoded" bytes are plain
`.npy` payloads, so batch code can be tested with synthetic buffers.
"""

from __future__ import annotations

import io
from typing import Any

import numpy as np
import pytest

from imgbatch.image_engine.decoder import (
    CorruptImageError,
    EncodeError,
    ImageCodec,
    UnsupportedFormatError,
    as_rgba,
)

_APP: Any | None = None

_NPY_MAGIC = b"\x93NUMPY"
CORRUPT_MAGIC = b"CORRUPT"
GIF_MAGIC = b"GIF89a"


def pytest_configure(config) -> None:  # noqa: ARG001
    """Ensure a QCoreApplication exists before collecting/running tests."""

    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    global _APP

    app = QCoreApplication.instance()
    # Keep a strong ref so it isn't GC'd mid-session.
    _APP = app if app is not None else QCoreApplication([])


def pytest_sessionfinish(session, exitstatus) -> None:  # noqa: ARG001
    try:
        from PySide6.QtCore import QCoreApplication
    except ImportError:
        return

    app = QCoreApplication.instance()
    if app is None:
        return
    app.quit()
    app.processEvents()


class FakeCodec(ImageCodec):
    """npy-backed codec. `CORRUPT...` bytes look like PNG but fail to decode."""

    def __init__(self, fail_encode: bool = False):
        self.fail_encode = fail_encode

    def guess_format(self, data: bytes) -> str | None:
        if data.startswith(_NPY_MAGIC) or data.startswith(CORRUPT_MAGIC):
            return "png"
        if data.startswith(GIF_MAGIC):
            return "gif"
        return None

    def decode(self, data: bytes) -> np.ndarray:
        if data.startswith(CORRUPT_MAGIC):
            raise CorruptImageError("truncated data")
        if not data.startswith(_NPY_MAGIC):
            raise UnsupportedFormatError("not an npy payload")
        return as_rgba(np.load(io.BytesIO(data)))

    def encode(self, array: np.ndarray, fmt: str, quality: int = 90) -> bytes:
        if fmt not in ("png", "jpg", "jpeg", "bmp", "webp"):
            raise UnsupportedFormatError(f"Unsupported format: {fmt}")
        if self.fail_encode:
            raise EncodeError("encoder exploded")
        buf = io.BytesIO()
        np.save(buf, as_rgba(array))
        return buf.getvalue()


def npy_bytes(array: np.ndarray) -> bytes:
    buf = io.BytesIO()
    np.save(buf, array)
    return buf.getvalue()


@pytest.fixture
def fake_codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def failing_encoder_codec() -> FakeCodec:
    return FakeCodec(fail_encode=True)


@pytest.fixture
def write_npy():
    """Write `array` as a fake-encoded image file and return its path."""

    def _write(path, array: np.ndarray):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(npy_bytes(array))
        return path

    return _write


@pytest.fixture
def framed_subject() -> np.ndarray:
    """9x9 white RGB image with a black 5x5 outline enclosing white content."""
    img = np.full((9, 9, 3), 255, dtype=np.uint8)
    img[2, 2:7] = 0
    img[6, 2:7] = 0
    img[2:7, 2] = 0
    img[2:7, 6] = 0
    return img
