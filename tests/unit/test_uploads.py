"""
Unit tests for uploaded file handling.
"""

from io import BytesIO

import pytest

from httpbind.binding import (
    UploadedFile,
    UploadSaveError,
    UploadTargetExists,
    safe_filename,
    save_bytes,
    save_uploaded_file,
)


def make_upload(content: bytes = b"hello", filename: str = "a.txt") -> UploadedFile:
    return UploadedFile(
        field_name="file",
        filename=filename,
        stream=BytesIO(content),
        size=len(content),
    )


class BrokenStream(BytesIO):
    """Fails after the first chunk."""

    def read(self, size=-1):
        if self.tell() > 0:
            raise OSError("read error")
        return super().read(2)


class TestSafeFilename:
    """Client filenames are reduced to their last component."""

    @pytest.mark.parametrize("raw,expected", [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\photo.png", "photo.png"),
        ("dir/", "upload"),
        ("..", "upload"),
        ("", "upload"),
    ])
    def test_safe_filename(self, raw, expected):
        assert safe_filename(raw) == expected

    def test_property(self):
        assert make_upload(filename="../x.txt").safe_filename == "x.txt"


class TestUploadedFile:
    """Reading an upload handle."""

    def test_read_rewinds(self):
        upload = make_upload(b"content")

        assert upload.read() == b"content"
        assert upload.read() == b"content"

    def test_close(self):
        upload = make_upload()

        upload.close()

        assert upload.stream.closed


class TestSaveUploadedFile:
    """Persisting uploads is explicit and never overwrites silently."""

    def test_save(self, tmp_path):
        dest = tmp_path / "a.txt"

        written = save_uploaded_file(make_upload(b"hello"), dest)

        assert written == dest
        assert dest.read_bytes() == b"hello"

    def test_save_creates_parent_dirs(self, tmp_path):
        dest = tmp_path / "nested" / "dir" / "a.txt"

        make_upload().save(dest)

        assert dest.exists()

    def test_refuses_to_overwrite(self, tmp_path):
        dest = tmp_path / "a.txt"
        dest.write_bytes(b"original")

        with pytest.raises(UploadTargetExists) as exc_info:
            save_uploaded_file(make_upload(b"new"), dest)

        assert exc_info.value.path == str(dest)
        assert dest.read_bytes() == b"original"

    def test_overwrite_opt_in(self, tmp_path):
        dest = tmp_path / "a.txt"
        dest.write_bytes(b"original")

        save_uploaded_file(make_upload(b"new"), dest, overwrite=True)

        assert dest.read_bytes() == b"new"

    def test_write_failure_is_os_error(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_bytes(b"")

        # Parent "directory" is a regular file
        with pytest.raises(UploadSaveError) as exc_info:
            save_uploaded_file(make_upload(), blocker / "a.txt")

        assert isinstance(exc_info.value, OSError)
        assert not isinstance(exc_info.value, UploadTargetExists)

    def test_failed_copy_removes_partial_file(self, tmp_path):
        dest = tmp_path / "a.txt"
        upload = make_upload(b"hello")
        upload.stream = BrokenStream(b"hello")

        with pytest.raises(UploadSaveError):
            save_uploaded_file(upload, dest)

        assert not dest.exists()
        # A retry is not refused as an existing file
        save_uploaded_file(make_upload(b"hello"), dest)
        assert dest.read_bytes() == b"hello"

    def test_stream_left_rewound(self, tmp_path):
        upload = make_upload(b"hello")

        upload.save(tmp_path / "a.txt")

        assert upload.stream.read() == b"hello"


class TestSaveBytes:
    """Raw body uploads follow the same rules."""

    def test_save_bytes(self, tmp_path):
        dest = save_bytes(b"\x00\x01", tmp_path / "bin.dat")

        assert dest.read_bytes() == b"\x00\x01"

    def test_save_bytes_refuses_to_overwrite(self, tmp_path):
        dest = tmp_path / "bin.dat"
        dest.write_bytes(b"keep")

        with pytest.raises(UploadTargetExists):
            save_bytes(b"new", dest)

        assert dest.read_bytes() == b"keep"
