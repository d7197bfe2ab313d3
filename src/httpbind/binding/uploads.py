"""
=============================================================================
UPLOADED FILES
=============================================================================

Binding a FILE field hands the caller UploadedFile handles; it never
touches the filesystem. Persisting is a separate, explicit step:

    record = binder.bind(request, UPLOAD_SCHEMA).unwrap()
    upload = record["file"]
    save_uploaded_file(upload, upload_dir / upload.filename)

=============================================================================
SAVE RULES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  dest exists, overwrite=False  → UploadSaveError (nothing written) │
    │  dest exists, overwrite=True   → replaced                          │
    │  parent dir missing            → created                           │
    │  any OS write failure          → UploadSaveError, dest removed     │
    └─────────────────────────────────────────────────────────────────────┘

The filename sent by the client is untrusted: `safe_filename` keeps only
the last path component so "../../etc/passwd" becomes "passwd".

=============================================================================
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .errors import UploadSaveError, UploadTargetExists


logger = logging.getLogger(__name__)


@dataclass
class UploadedFile:
    """
    One file part of a multipart request.

    Attributes:
        field_name: Form field the part was sent under.
        filename: Client-supplied filename (untrusted).
        stream: Readable binary stream positioned at the start.
        size: Size in bytes.
        content_type: Part Content-Type, if the client sent one.
    """
    field_name: str
    filename: str
    stream: BinaryIO
    size: int
    content_type: Optional[str] = None

    def read(self) -> bytes:
        """Read the whole content, leaving the stream rewound."""
        self.stream.seek(0)
        try:
            return self.stream.read()
        finally:
            self.stream.seek(0)

    @property
    def safe_filename(self) -> str:
        return safe_filename(self.filename)

    def save(self, dest: Union[str, Path], overwrite: bool = False) -> Path:
        """Shortcut for save_uploaded_file(self, dest, overwrite)."""
        return save_uploaded_file(self, dest, overwrite=overwrite)

    def close(self) -> None:
        """Release the stream (removes a spilled temporary file)."""
        self.stream.close()


def safe_filename(filename: str) -> str:
    """
    Strip directory components from a client-supplied filename.

    Handles both separators since browsers on Windows may send
    "C:\\Users\\me\\photo.png".
    """
    name = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    if name in ("", ".", ".."):
        return "upload"
    return name


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except OSError as e:
        logger.warning(f"Could not remove partial file {path}: {e}")


def _open_target(path: Path, overwrite: bool) -> BinaryIO:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise UploadSaveError(f"Cannot create directory {path.parent}: {e}", str(path)) from e
    # "xb" fails atomically if the file appeared in the meantime
    try:
        return open(path, "wb" if overwrite else "xb")
    except FileExistsError:
        raise UploadTargetExists(
            f"Refusing to overwrite existing file: {path}", str(path)
        ) from None
    except OSError as e:
        raise UploadSaveError(f"Cannot open {path} for writing: {e}", str(path)) from e


def save_uploaded_file(
    upload: UploadedFile,
    dest: Union[str, Path],
    overwrite: bool = False,
) -> Path:
    """
    Write an uploaded file to dest.

    Args:
        upload: The handle produced by binding.
        dest: Target file path.
        overwrite: Replace dest if it already exists.

    Returns:
        The path written.

    Raises:
        UploadSaveError: If dest exists and overwrite is False, or the
                         write fails.
    """
    path = Path(dest)
    out = _open_target(path, overwrite)
    try:
        with out:
            upload.stream.seek(0)
            shutil.copyfileobj(upload.stream, out)
    except OSError as e:
        logger.error(f"Failed to save upload {upload.filename!r} to {path}: {e}")
        _discard(path)
        raise UploadSaveError(f"Failed to save upload to {path}: {e}", str(path)) from e
    finally:
        upload.stream.seek(0)

    logger.info(f"Saved upload {upload.filename!r} ({upload.size} bytes) to {path}")
    return path


def save_bytes(
    data: bytes,
    dest: Union[str, Path],
    overwrite: bool = False,
) -> Path:
    """
    Write a raw body (binary upload) to dest with the same rules as
    save_uploaded_file.
    """
    path = Path(dest)
    out = _open_target(path, overwrite)
    try:
        with out:
            out.write(data)
    except OSError as e:
        logger.error(f"Failed to save {len(data)} bytes to {path}: {e}")
        _discard(path)
        raise UploadSaveError(f"Failed to save to {path}: {e}", str(path)) from e

    logger.info(f"Saved {len(data)} bytes to {path}")
    return path
