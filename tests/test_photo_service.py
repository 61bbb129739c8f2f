"""Photo validation, upload retry/rollback and the blob store backends."""
import re

import pytest

from container_check import config
from container_check.errors import NotFound, PhotoCountOutOfRange, PhotoUploadFailed, ValidationFailed
from container_check.services.blob_store import BlobStoreError, LocalBlobStore, S3BlobStore
from container_check.services.photo_service import (
    SECURITY_PREFIX,
    PhotoFile,
    check_photo_count,
    remove_blobs,
    select_deleted,
    upload_photos,
    usable_photos,
)

from conftest import FailingStore, make_photos, png_bytes


class TestUsablePhotos:
    def test_empty_files_are_dropped(self):
        files = [PhotoFile("a.png", b""), PhotoFile("b.png", png_bytes())]
        assert [f.filename for f in usable_photos(files)] == ["b.png"]

    def test_non_image_rejected(self):
        with pytest.raises(ValidationFailed) as exc:
            usable_photos([PhotoFile("notes.txt", b"not an image at all")])
        assert exc.value.payload["field"] == "photos"

    def test_content_type_detected(self):
        (photo,) = usable_photos([PhotoFile("x", png_bytes(), content_type=None)])
        assert photo.content_type == "image/png"


class TestPhotoCount:
    @pytest.mark.parametrize("actual", [config.MIN_PHOTOS, config.MAX_PHOTOS])
    def test_bounds_inclusive(self, actual):
        check_photo_count(actual)

    @pytest.mark.parametrize("actual", [config.MIN_PHOTOS - 1, config.MAX_PHOTOS + 1])
    def test_outside_bounds(self, actual):
        with pytest.raises(PhotoCountOutOfRange) as exc:
            check_photo_count(actual)
        assert exc.value.payload["actual"] == actual


class TestUpload:
    def test_paths_are_unique_and_prefixed(self, store):
        stored = upload_photos(store, SECURITY_PREFIX, make_photos(5))
        paths = [s.storage_path for s in stored]
        assert len(set(paths)) == 5
        assert all(re.match(r"^inspections/\d+-[0-9a-f]{8}\.png$", p) for p in paths)
        assert all(s.url.startswith("http://testserver/uploads/") for s in stored)

    def test_retries_before_giving_up(self, tmp_path, monkeypatch):
        monkeypatch.setattr(config, "UPLOAD_RETRIES", 2)
        failing = FailingStore(tmp_path / "f", succeed=0)
        with pytest.raises(PhotoUploadFailed) as exc:
            upload_photos(failing, SECURITY_PREFIX, make_photos(1))
        assert failing.attempts == 3
        assert exc.value.payload["filename"] == "photo0.png"

    def test_partial_failure_removes_earlier_uploads(self, tmp_path):
        failing = FailingStore(tmp_path / "f", succeed=2)
        with pytest.raises(PhotoUploadFailed):
            upload_photos(failing, SECURITY_PREFIX, make_photos(4))
        assert len(failing.put_paths) == 2
        assert not any(failing.exists(p) for p in failing.put_paths)

    def test_remove_blobs_reports_failure(self, tmp_path):
        failing = FailingStore(tmp_path / "f", fail_remove=True)
        assert remove_blobs(failing, ["a/b.png"]) is False
        assert remove_blobs(failing, []) is True


class TestSelectDeleted:
    class _P:
        def __init__(self, id):
            self.id = id

    def test_duplicates_count_once(self):
        photos = [self._P(1), self._P(2)]
        assert [p.id for p in select_deleted(photos, [2, 2, 1])] == [1, 2]

    def test_foreign_id_rejected(self):
        with pytest.raises(NotFound):
            select_deleted([self._P(1)], [7])


class _FakeS3:
    def __init__(self, errors=None):
        self.objects = {}
        self.errors = errors or []

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[(Bucket, Key)] = (Body, ContentType)

    def delete_objects(self, Bucket, Delete):
        for obj in Delete["Objects"]:
            self.objects.pop((Bucket, obj["Key"]), None)
        return {"Errors": self.errors}


class TestBlobStores:
    def test_local_store_round_trip(self, tmp_path):
        store = LocalBlobStore(tmp_path, "http://host/")
        url = store.put("bucket", "inspections/1-abc.png", b"data", "image/png")
        assert url == "http://host/uploads/bucket/inspections/1-abc.png"
        assert (tmp_path / "bucket" / "inspections" / "1-abc.png").read_bytes() == b"data"
        with pytest.raises(BlobStoreError):
            store.put("bucket", "inspections/1-abc.png", b"again", "image/png")
        store.remove("bucket", ["inspections/1-abc.png", "inspections/missing.png"])
        assert not (tmp_path / "bucket" / "inspections" / "1-abc.png").exists()

    def test_s3_store_url_and_delete(self):
        client = _FakeS3()
        store = S3BlobStore(client, "ap-southeast-1")
        url = store.put("photos", "checker/1-abc.jpg", b"x", "image/jpeg")
        assert url == "https://photos.s3.ap-southeast-1.amazonaws.com/checker/1-abc.jpg"
        store.remove("photos", ["checker/1-abc.jpg"])
        assert client.objects == {}

    def test_s3_delete_errors_raise(self):
        store = S3BlobStore(_FakeS3(errors=[{"Key": "k", "Message": "denied"}]), "eu-west-1")
        with pytest.raises(BlobStoreError):
            store.remove("photos", ["k"])
