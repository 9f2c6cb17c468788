from pathlib import Path

import numpy as np

from imgbatch.background import remove_background_file


def _white_with_square(size=8) -> np.ndarray:
    img = np.full((size, size, 3), 255, dtype=np.uint8)
    img[3:5, 3:5] = 0
    return img


def test_writes_png_mirroring_source_tree(tmp_path: Path, fake_codec, write_npy):
    src = tmp_path / "in"
    out = tmp_path / "out"
    path = write_npy(src / "nested" / "deep" / "photo.jpg", _white_with_square())

    result = remove_background_file(path, src, out, 30, codec=fake_codec)

    expected = out / "nested" / "deep" / "photo.png"
    assert result.ok, result.message
    assert Path(result.output) == expected.resolve()
    assert expected.exists()

    written = fake_codec.decode(expected.read_bytes())
    assert written[0, 0, 3] == 0
    assert written[3, 3, 3] == 255


def test_threshold_is_forwarded(tmp_path: Path, fake_codec, write_npy):
    img = np.full((5, 5, 3), 255, dtype=np.uint8)
    img[2, 2] = 235  # 20 away from white; an edge only for thresholds below 20
    path = write_npy(tmp_path / "a.png", img)

    strict = remove_background_file(path, tmp_path, tmp_path / "strict", 10, codec=fake_codec)
    loose = remove_background_file(path, tmp_path, tmp_path / "loose", 30, codec=fake_codec)

    strict_img = fake_codec.decode(Path(strict.output).read_bytes())
    loose_img = fake_codec.decode(Path(loose.output).read_bytes())
    assert strict_img[2, 1, 3] == 255
    assert loose_img[2, 1, 3] == 0


def test_undecodable_file_is_skipped(tmp_path: Path, fake_codec):
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"CORRUPT")

    result = remove_background_file(bad, tmp_path, tmp_path / "out", codec=fake_codec)

    assert result.status == "skipped"
    assert "could not decode" in result.message
    assert not (tmp_path / "out" / "bad.png").exists()


def test_encode_failure_is_reported(tmp_path: Path, failing_encoder_codec, write_npy):
    path = write_npy(tmp_path / "a.png", _white_with_square())
    result = remove_background_file(path, tmp_path, tmp_path / "out", codec=failing_encoder_codec)

    assert result.status == "failed"
    assert "encoder exploded" in result.message


def test_output_dir_may_equal_source(tmp_path: Path, fake_codec, write_npy):
    path = write_npy(tmp_path / "photo.bmp", _white_with_square())
    result = remove_background_file(path, tmp_path, tmp_path, codec=fake_codec)

    assert result.ok
    assert (tmp_path / "photo.png").exists()
    assert path.exists()
