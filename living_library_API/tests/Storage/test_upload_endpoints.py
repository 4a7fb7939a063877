# test_upload_endpoints.py
# Description: Signed upload URL issuance, upload through the signed URL and public reads.
#
# Imports
import re
#
# 3rd-party Libraries
import pytest
from fastapi import status
#
# Local Imports
from living_library_API.app.api.v1.endpoints.upload import build_object_path
from living_library_API.app.core.config import ALLOWED_UPLOAD_TYPES, settings
from living_library_API.app.core.Security.Security import create_upload_token
from living_library_API.tests.test_utils import auth_headers
#
#######################################################################################################################
#
# Functions:

UPLOAD_URL = "/api/v1/upload/url"


def request_upload(client, user, file_name="clip.mp3", file_type="audio/mpeg", file_size=1024):
    return client.post(UPLOAD_URL, json={"fileName": file_name, "fileType": file_type, "fileSize": file_size},
                       headers=auth_headers(user))


def test_build_object_path():
    path = build_object_path("user-1", "summer.trip.MP4")
    assert re.fullmatch(r"user-1/\d{13}-[a-z0-9]{11}\.MP4", path)


def test_upload_url(client, owner):
    response = request_upload(client, owner)

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert set(body) == {"uploadUrl", "publicUrl", "filePath", "expiresAt"}
    assert body["filePath"].startswith(f"{owner['id']}/")
    assert body["filePath"].endswith(".mp3")
    assert body["publicUrl"].endswith(body["filePath"])
    assert body["expiresAt"].endswith("Z")


def test_upload_url_unsupported_type(client, owner):
    response = request_upload(client, owner, file_name="notes.pdf", file_type="application/pdf")

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"error": "Unsupported file type", "allowedTypes": ALLOWED_UPLOAD_TYPES}


@pytest.mark.parametrize("file_size", [0, 100 * 1024 * 1024 + 1])
def test_upload_url_size_limits(client, owner, file_size):
    response = request_upload(client, owner, file_size=file_size)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_upload_url_requires_auth(client):
    response = client.post(UPLOAD_URL, json={"fileName": "clip.mp3", "fileType": "audio/mpeg", "fileSize": 10})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_upload_and_read_back(client, owner):
    issued = request_upload(client, owner).json()

    put_response = client.put(issued["uploadUrl"], content=b"ID3 not really audio")
    assert put_response.status_code == status.HTTP_200_OK
    assert put_response.json() == {"path": issued["filePath"], "size": 20, "publicUrl": issued["publicUrl"]}

    get_response = client.get(issued["publicUrl"])
    assert get_response.status_code == status.HTTP_200_OK
    assert get_response.content == b"ID3 not really audio"


def test_signed_url_is_single_object(client, owner):
    issued = request_upload(client, owner).json()
    client.put(issued["uploadUrl"], content=b"first")

    response = client.put(issued["uploadUrl"], content=b"second")
    assert response.status_code == status.HTTP_409_CONFLICT


def test_upload_with_invalid_token(client):
    response = client.put("/api/v1/storage/upload/not-a-token", content=b"data")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_upload_with_expired_token(client):
    token = create_upload_token("fragments", "user-1/clip.mp3", -10)
    response = client.put(f"/api/v1/storage/upload/{token}", content=b"data")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_upload_too_large(client, owner, monkeypatch):
    monkeypatch.setitem(settings, "MAX_UPLOAD_BYTES", 4)
    issued = request_upload(client, owner).json()

    response = client.put(issued["uploadUrl"], content=b"12345")
    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


def test_chunked_upload_too_large(client, owner, monkeypatch):
    monkeypatch.setitem(settings, "MAX_UPLOAD_BYTES", 4)
    issued = request_upload(client, owner).json()

    response = client.put(issued["uploadUrl"], content=iter([b"12", b"34", b"56"]))

    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    assert client.get(issued["publicUrl"]).status_code == status.HTTP_404_NOT_FOUND


def test_chunked_upload_within_limit(client, owner, monkeypatch):
    monkeypatch.setitem(settings, "MAX_UPLOAD_BYTES", 4)
    issued = request_upload(client, owner).json()

    response = client.put(issued["uploadUrl"], content=iter([b"12", b"34"]))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["size"] == 4
    assert client.get(issued["publicUrl"]).content == b"1234"


def test_read_unknown_bucket(client):
    response = client.get("/api/v1/storage/object/avatars/user-1/clip.mp3")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Bucket not found"


def test_read_missing_object(client):
    response = client.get("/api/v1/storage/object/fragments/user-1/missing.mp3")
    assert response.status_code == status.HTTP_404_NOT_FOUND

#
# End of test_upload_endpoints.py
#######################################################################################################################
