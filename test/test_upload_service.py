import os

import pytest

from sentiscope.errors import AppError
from sentiscope.services import storage_service, upload_service


def test_validate_upload_accepts_known_extensions():
    assert upload_service.validate_upload("Reviews.CSV", 10, "csv") == ".csv"
    assert upload_service.validate_upload("shot.webp", 10, "image") == ".webp"


@pytest.mark.parametrize(
    "filename,size,kind,status",
    [
        ("data.txt", 10, "csv", 400),
        ("photo.tiff", 10, "image", 400),
        ("data.csv", 10 * 1024 * 1024 + 1, "csv", 413),
        ("data.csv", 0, "csv", 400),
    ],
)
def test_validate_upload_rejects(filename, size, kind, status):
    with pytest.raises(AppError) as excinfo:
        upload_service.validate_upload(filename, size, kind)
    assert excinfo.value.status_code == status


def test_temp_upload_is_removed_on_failure():
    with pytest.raises(RuntimeError):
        with upload_service.temp_upload(b"a,b\n", "csv", ".csv") as path:
            assert os.path.basename(path).startswith("csv-")
            assert os.path.exists(path)
            raise RuntimeError("analysis blew up")
    assert not os.path.exists(path)


def test_storage_disabled_without_bucket(tmp_path):
    source = tmp_path / "x.csv"
    source.write_text("a\n")

    assert storage_service.is_enabled() is False
    assert storage_service.upload_file(str(source), "x.csv", "user-1", "csv") is None
    assert storage_service.get_signed_url("user-1/csv/x.csv") is None
    assert storage_service.delete_file("user-1/csv/x.csv") is False
    assert storage_service.download_file("user-1/csv/x.csv") is None


def test_storage_upload_key_layout(monkeypatch, tmp_path):
    uploaded = {}

    class FakeS3:
        def upload_fileobj(self, fh, bucket, key, ExtraArgs=None):
            uploaded.update(bucket=bucket, key=key, body=fh.read(), content_type=ExtraArgs["ContentType"])

    monkeypatch.setattr("sentiscope.config.S3_BUCKET_NAME", "sentiscope-files")
    monkeypatch.setattr("sentiscope.services.storage_service._client", lambda: FakeS3())
    source = tmp_path / "upload.csv"
    source.write_bytes(b"text\nhello\n")

    stored = storage_service.upload_file(str(source), "reviews.csv", "user-1", "csv")

    assert uploaded["bucket"] == "sentiscope-files"
    assert uploaded["key"].startswith("user-1/csv/") and uploaded["key"].endswith("-reviews.csv")
    assert uploaded["body"] == b"text\nhello\n"
    assert uploaded["content_type"] == "text/csv"
    assert stored["path"] == uploaded["key"]
