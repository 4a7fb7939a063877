# test_fragments_api.py
#
#
# Imports
#
# Third-Party Imports
import httpx
import pytest
from fastapi import status
#
# Local Imports
from living_library_API.app.api.v1.API_Deps.Library_Deps import get_embedding_service
from living_library_API.app.core.AI_Services.AI_Interfaces import PIIDetection
from living_library_API.app.core.AI_Services.Local_Services import LocalEmbeddingService
from living_library_API.tests.test_utils import TEST_SITE_URL, auth_headers, make_fragment
#
########################################################################################################################
#
# Functions:

FRAGMENTS_URL = "/api/v1/fragments/"


def _media_url(object_path: str) -> str:
    return f"{TEST_SITE_URL}/api/v1/storage/object/fragments/{object_path}"


def _create_payload(**overrides):
    payload = {
        "title": "Grandma's kitchen",
        "body": "The smell of bread every Sunday morning.",
        "eventAt": "1998-03-15T09:30:00Z",
        "tags": ["family", "food"],
    }
    payload.update(overrides)
    return payload


# --- Create ---

def test_create_fragment(client, owner, classification_service, library_db):
    response = client.post(FRAGMENTS_URL, json=_create_payload(), headers=auth_headers(owner))

    assert response.status_code == status.HTTP_201_CREATED
    fragment = response.json()["fragment"]
    assert fragment["user_id"] == owner["id"]
    assert fragment["status"] == "PROCESSING"
    assert fragment["visibility"] == "PRIVATE"
    assert fragment["tags"] == ["family", "food"]
    assert fragment["event_at"] == "1998-03-15T09:30:00.000Z"
    assert classification_service.pii_calls == [
        "Grandma's kitchen The smell of bread every Sunday morning."]
    assert library_db.get_fragment_by_id(fragment["id"]) is not None


def test_create_fragment_rejected_on_pii(client, owner, classification_service, library_db):
    classification_service.pii = [
        PIIDetection(text="Contact me at us", type="email", start=0, end=16, confidence=0.9),
    ]
    response = client.post(FRAGMENTS_URL, json=_create_payload(title="Contact me at user@example.com"),
                           headers=auth_headers(owner))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    body = response.json()
    assert body["error"] == "PII detected in content"
    assert len(body["piiDetections"]) == 1
    assert body["piiDetections"][0]["type"] == "email"
    assert (body["piiDetections"][0]["start"], body["piiDetections"][0]["end"]) == (0, 16)
    assert library_db.list_fragments(owner["id"]) == []


def test_create_fragment_requires_auth(client):
    response = client.post(FRAGMENTS_URL, json=_create_payload())
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"detail": "Unauthorized"}


def test_create_fragment_rejects_long_title(client, owner):
    response = client.post(FRAGMENTS_URL, json=_create_payload(title="x" * 81), headers=auth_headers(owner))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_create_fragment_with_media(client, owner):
    media = [{"url": _media_url(f"{owner['id']}/clip.mp3"), "type": "audio", "mimeType": "audio/mpeg"}]
    response = client.post(FRAGMENTS_URL, json=_create_payload(media=media), headers=auth_headers(owner))

    assert response.status_code == status.HTTP_201_CREATED
    stored = response.json()["fragment"]["media"]
    assert stored[0]["type"] == "audio"
    assert stored[0]["mimeType"] == "audio/mpeg"


# --- List ---

def test_list_fragments_scoped_to_owner_and_public(client, owner, other_user, library_db):
    mine = make_fragment(library_db, owner, title="Mine")
    make_fragment(library_db, other_user, title="Their private")
    theirs_public = make_fragment(library_db, other_user, title="Their public", visibility="PUBLIC")

    response = client.get(FRAGMENTS_URL, headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert {f["id"] for f in data["fragments"]} == {mine["id"], theirs_public["id"]}
    assert data["pagination"] == {"offset": 0, "limit": 20, "total": 2}


def test_list_fragments_filters(client, owner, library_db):
    make_fragment(library_db, owner, title="Lake trip", tags=["summer"], event_at="2020-07-01T00:00:00Z")
    make_fragment(library_db, owner, title="Snow day", tags=["winter"], event_at="2021-01-10T00:00:00Z")

    by_tag = client.get(FRAGMENTS_URL, params={"tags": ["winter"]}, headers=auth_headers(owner)).json()
    assert [f["title"] for f in by_tag["fragments"]] == ["Snow day"]

    by_text = client.get(FRAGMENTS_URL, params={"q": "LAKE"}, headers=auth_headers(owner)).json()
    assert [f["title"] for f in by_text["fragments"]] == ["Lake trip"]

    by_date = client.get(FRAGMENTS_URL, params={"dateFrom": "2020-12-01T00:00:00Z"},
                         headers=auth_headers(owner)).json()
    assert [f["title"] for f in by_date["fragments"]] == ["Snow day"]


def test_list_fragments_newest_event_first_with_paging(client, owner, library_db):
    for year in (2001, 2003, 2002):
        make_fragment(library_db, owner, title=f"Year {year}", event_at=f"{year}-01-01T00:00:00Z")

    page = client.get(FRAGMENTS_URL, params={"limit": 2, "offset": 1}, headers=auth_headers(owner)).json()
    assert [f["title"] for f in page["fragments"]] == ["Year 2002", "Year 2001"]
    assert page["pagination"] == {"offset": 1, "limit": 2, "total": 2}


@pytest.mark.parametrize("limit", [0, 101])
def test_list_fragments_limit_bounds(client, owner, limit):
    response = client.get(FRAGMENTS_URL, params={"limit": limit}, headers=auth_headers(owner))
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


# --- Get ---

def test_get_fragment_with_links(client, owner, library_db):
    source = make_fragment(library_db, owner, title="Source")
    target = make_fragment(library_db, owner, title="Target")
    library_db.replace_links_for_fragment(source["id"], [
        {"to_id": target["id"], "type": "SHARED_TAG", "score": 0.5, "reason": "Shares 2 tags: a, b"},
    ])

    response = client.get(f"{FRAGMENTS_URL}{source['id']}", headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    fragment = response.json()["fragment"]
    assert fragment["links_from"][0]["to_id"] == target["id"]
    assert fragment["links_from"][0]["to_fragment"]["title"] == "Target"
    assert fragment["links_to"] == []

    inbound = client.get(f"{FRAGMENTS_URL}{target['id']}", headers=auth_headers(owner)).json()["fragment"]
    assert inbound["links_to"][0]["from_fragment"]["title"] == "Source"


def test_get_private_fragment_of_other_user_is_not_found(client, owner, other_user, library_db):
    hidden = make_fragment(library_db, other_user)
    response = client.get(f"{FRAGMENTS_URL}{hidden['id']}", headers=auth_headers(owner))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Fragment not found"


def test_get_public_fragment_of_other_user(client, owner, other_user, library_db):
    shared = make_fragment(library_db, other_user, visibility="PUBLIC")
    response = client.get(f"{FRAGMENTS_URL}{shared['id']}", headers=auth_headers(owner))
    assert response.status_code == status.HTTP_200_OK


# --- Update ---

def test_update_fragment_content_resets_status(client, owner, library_db):
    fragment = make_fragment(library_db, owner, status="READY")

    response = client.put(f"{FRAGMENTS_URL}{fragment['id']}", json={"body": "A better telling."},
                          headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    updated = response.json()["fragment"]
    assert updated["body"] == "A better telling."
    assert updated["title"] == fragment["title"]
    assert updated["status"] == "PROCESSING"


def test_update_fragment_visibility_keeps_status(client, owner, library_db):
    fragment = make_fragment(library_db, owner, status="READY")

    response = client.put(f"{FRAGMENTS_URL}{fragment['id']}", json={"visibility": "PUBLIC"},
                          headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["fragment"]["visibility"] == "PUBLIC"
    assert response.json()["fragment"]["status"] == "READY"


def test_update_fragment_of_other_user(client, owner, other_user, library_db):
    fragment = make_fragment(library_db, other_user, visibility="PUBLIC")

    response = client.put(f"{FRAGMENTS_URL}{fragment['id']}", json={"title": "Hijacked"},
                          headers=auth_headers(owner))

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Fragment not found or access denied"
    assert library_db.get_fragment_by_id(fragment["id"])["title"] == fragment["title"]


@pytest.mark.parametrize("field", ["title", "body", "eventAt", "visibility", "tags", "media"])
def test_update_fragment_rejects_null_for_required_column(client, owner, library_db, field):
    fragment = make_fragment(library_db, owner, status="READY")

    response = client.put(f"{FRAGMENTS_URL}{fragment['id']}", json={field: None}, headers=auth_headers(owner))

    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    stored = library_db.get_fragment_by_id(fragment["id"])
    assert stored["title"] == fragment["title"]
    assert stored["status"] == "READY"


def test_update_fragment_allows_clearing_location(client, owner, library_db):
    fragment = make_fragment(library_db, owner, location_text="Lake house", lat=40.0, lng=-75.0)

    response = client.put(f"{FRAGMENTS_URL}{fragment['id']}",
                          json={"locationText": None, "lat": None, "lng": None}, headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    updated = response.json()["fragment"]
    assert updated["location_text"] is None
    assert updated["lat"] is None


# --- Delete ---

def test_delete_fragment_survives_media_failure(client, owner, library_db, media_storage):
    stored_path = f"{owner['id']}/kept.jpg"
    media_storage.put_object(stored_path, b"jpeg-bytes")
    fragment = make_fragment(library_db, owner, media=[
        {"url": _media_url(stored_path), "type": "image"},
        {"url": _media_url(f"{owner['id']}/already-gone.mp3"), "type": "audio"},
    ])

    response = client.delete(f"{FRAGMENTS_URL}{fragment['id']}", headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True}
    assert library_db.get_fragment_by_id(fragment["id"]) is None
    assert not (media_storage.bucket_dir / owner["id"] / "kept.jpg").exists()
    events = library_db.list_audit_events(action="fragment_deleted", subject_id=fragment["id"])
    assert len(events) == 1
    assert "deleted_at" in events[0]["meta"]


def test_delete_fragment_not_found(client, owner):
    response = client.delete(f"{FRAGMENTS_URL}does-not-exist", headers=auth_headers(owner))
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_delete_fragment_of_other_user_is_forbidden(client, owner, other_user, library_db):
    fragment = make_fragment(library_db, other_user, visibility="PUBLIC")
    response = client.delete(f"{FRAGMENTS_URL}{fragment['id']}", headers=auth_headers(owner))
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert library_db.get_fragment_by_id(fragment["id"]) is not None


def test_delete_fragment_cascades_links(client, owner, library_db):
    first = make_fragment(library_db, owner, title="First")
    second = make_fragment(library_db, owner, title="Second")
    library_db.replace_links_for_fragment(second["id"], [
        {"to_id": first["id"], "type": "SEMANTIC", "score": 0.9, "reason": "Semantic similarity: 90.0%"},
    ])

    client.delete(f"{FRAGMENTS_URL}{first['id']}", headers=auth_headers(owner))

    assert library_db.get_links_from(second["id"]) == []


# --- Process ---

def test_process_fragment(client, owner, library_db, transcription_service, embedding_service):
    audio_url = _media_url(f"{owner['id']}/voice.mp3")
    transcription_service.transcripts[audio_url] = "spoken words"
    fragment = make_fragment(library_db, owner, status="PROCESSING", media=[{"url": audio_url, "type": "audio"}])

    response = client.post(f"{FRAGMENTS_URL}{fragment['id']}/process", headers=auth_headers(owner))

    assert response.status_code == status.HTTP_200_OK
    processed = response.json()["fragment"]
    assert processed["status"] == "READY"
    assert processed["transcript"] == "spoken words"
    assert processed["system_emotions"] == ["joy"]
    assert processed["system_themes"] == ["family"]
    assert embedding_service.calls == [f"{fragment['title']} {fragment['body']} spoken words"]


def test_process_fragment_upstream_failure(client, owner, library_db, embedding_service):
    embedding_service.fail = True
    fragment = make_fragment(library_db, owner, status="PROCESSING")

    response = client.post(f"{FRAGMENTS_URL}{fragment['id']}/process", headers=auth_headers(owner))

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert library_db.get_fragment_by_id(fragment["id"])["status"] == "FAILED"


def test_process_fragment_malformed_embedding_response(client, owner, library_db):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[0.1, 0.2]))
    client.app.dependency_overrides[get_embedding_service] = \
        lambda: LocalEmbeddingService(httpx.AsyncClient(transport=transport))
    fragment = make_fragment(library_db, owner, status="PROCESSING")

    response = client.post(f"{FRAGMENTS_URL}{fragment['id']}/process", headers=auth_headers(owner))

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert library_db.get_fragment_by_id(fragment["id"])["status"] == "FAILED"

#
# End of test_fragments_api.py
########################################################################################################################
