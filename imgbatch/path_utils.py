"""Path helpers for input discovery and output placement.

- Use absolute paths when interacting with the filesystem.
- Output paths are derived from input paths only here, so the remove and
  convert tasks agree on naming rules.

Keep this module free of Qt and codec dependencies.
"""

from __future__ import annotations

from pathlib import Path

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        # strict=False avoids exceptions for non-existent paths.
        return p.resolve(strict=False)
    except OSError:
        return p.absolute()


def abs_path_str(path: str | Path) -> str:
    """Absolute, OS-native path string (Windows uses backslashes)."""
    return _normalize_drive_letter(str(abs_path(path)))


def extension_of(path: str | Path) -> str:
    """Lowercase extension without the leading dot ("" when there is none)."""
    return Path(path).suffix.lower().lstrip(".")


def mirrored_output_path(path: str | Path, source_dir: str | Path, output_dir: str | Path, fmt: str) -> Path:
    """`output_dir` / (path relative to `source_dir`) with its extension replaced by `fmt`.

    Files outside `source_dir` keep only their file name.
    """
    p = abs_path(path)
    try:
        relative = p.relative_to(abs_path(source_dir))
    except ValueError:
        relative = Path(p.name)
    return abs_path(output_dir) / relative.with_suffix(f".{fmt}")


def flat_output_path(path: str | Path, output_dir: str | Path, fmt: str) -> Path:
    """`output_dir` / <stem>.<fmt>, ignoring the input's sub-directory."""
    return abs_path(output_dir) / f"{Path(path).stem}.{fmt}"
