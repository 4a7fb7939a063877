# test_media_storage.py
# Description: MediaStorage bucket behaviour against a real directory under tmp_path.
#
# Imports
#
# 3rd-party Libraries
import pytest
#
# Local Imports
from living_library_API.app.core.exceptions import AuthenticationError, ErrorKind, NotFoundError, StorageError
from living_library_API.app.core.Security.Security import create_upload_token
from living_library_API.app.core.Storage.Media_Storage import MediaStorage
from living_library_API.tests.test_utils import TEST_SITE_URL
#
#######################################################################################################################
#
# Functions:


class TestObjectPaths:
    @pytest.mark.parametrize("bad_path", ["", "   ", "../outside.mp3", "user/../../outside.mp3", "/etc/passwd",
                                          "user\\clip.mp3"])
    def test_rejects_unsafe_paths(self, media_storage, bad_path):
        with pytest.raises(StorageError) as exc_info:
            media_storage.put_object(bad_path, b"data")
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_public_url_is_quoted(self, media_storage):
        url = media_storage.get_public_url("user-1/my clip.mp3")
        assert url == f"{TEST_SITE_URL}/api/v1/storage/object/fragments/user-1/my%20clip.mp3"

    def test_path_from_own_public_url(self, media_storage):
        url = media_storage.get_public_url("user-1/my clip.mp3")
        assert media_storage.path_from_url(url) == "user-1/my clip.mp3"

    def test_path_from_foreign_url_uses_last_segment(self, media_storage):
        assert media_storage.path_from_url("https://cdn.example.com/media/user-1/photo%20one.jpg") == "photo one.jpg"

    def test_path_from_invalid_url(self, media_storage):
        with pytest.raises(StorageError):
            media_storage.path_from_url("not a url")


class TestObjects:
    def test_put_and_read(self, media_storage):
        stored = media_storage.put_object("user-1/clip.mp3", b"ID3 audio")
        assert stored.read_bytes() == b"ID3 audio"
        assert media_storage.object_file("user-1/clip.mp3") == stored

    def test_put_existing_object_conflicts(self, media_storage):
        media_storage.put_object("user-1/clip.mp3", b"first")
        with pytest.raises(StorageError) as exc_info:
            media_storage.put_object("user-1/clip.mp3", b"second")
        assert exc_info.value.kind == ErrorKind.CONFLICT
        assert exc_info.value.status_code == 409

    def test_upsert_replaces_object(self, media_storage):
        media_storage.put_object("user-1/clip.mp3", b"first")
        media_storage.put_object("user-1/clip.mp3", b"second", upsert=True)
        assert media_storage.object_file("user-1/clip.mp3").read_bytes() == b"second"

    def test_remove(self, media_storage):
        stored = media_storage.put_object("user-1/clip.mp3", b"data")
        assert media_storage.remove(["user-1/clip.mp3"]) == ["user-1/clip.mp3"]
        assert not stored.exists()

    def test_remove_missing_object(self, media_storage):
        with pytest.raises(StorageError) as exc_info:
            media_storage.remove(["user-1/missing.mp3"])
        assert exc_info.value.kind == ErrorKind.NOT_FOUND

    def test_object_file_missing(self, media_storage):
        with pytest.raises(NotFoundError):
            media_storage.object_file("user-1/missing.mp3")

    def test_buckets_are_isolated(self, tmp_path, media_storage):
        other = MediaStorage(tmp_path / "media", "avatars", TEST_SITE_URL)
        media_storage.put_object("user-1/clip.mp3", b"data")
        with pytest.raises(NotFoundError):
            other.object_file("user-1/clip.mp3")


class TestSignedUploads:
    def test_signed_url_round_trip(self, media_storage):
        url = media_storage.create_signed_upload_url("user-1/clip.mp3", 60)
        assert url.startswith(f"{TEST_SITE_URL}/api/v1/storage/upload/")

        token_data = media_storage.verify_upload_token(url.rsplit("/", 1)[1])
        assert token_data.path == "user-1/clip.mp3"
        assert token_data.bucket == "fragments"

    def test_signed_url_requires_safe_path(self, media_storage):
        with pytest.raises(StorageError):
            media_storage.create_signed_upload_url("../clip.mp3", 60)

    def test_token_for_other_bucket(self, media_storage):
        with pytest.raises(AuthenticationError):
            media_storage.verify_upload_token(create_upload_token("avatars", "user-1/clip.mp3", 60))

    def test_expired_token(self, media_storage):
        with pytest.raises(AuthenticationError):
            media_storage.verify_upload_token(create_upload_token("fragments", "user-1/clip.mp3", -10))

    def test_garbage_token(self, media_storage):
        with pytest.raises(AuthenticationError):
            media_storage.verify_upload_token("not-a-token")

#
# End of test_media_storage.py
#######################################################################################################################
