# test_library_db.py
#
#
# Imports
import sqlite3
from datetime import datetime, timedelta, timezone
#
# Third-Party Imports
import pytest
#
# Local Imports
from living_library_API.app.core.DB_Management.Library_DB import (
    ConflictError,
    LibraryDB,
    LibraryDBError,
    SchemaError,
)
from living_library_API.app.core.exceptions import ErrorKind
from living_library_API.tests.test_utils import make_fragment, set_created_at
#
#######################################################################################################################
#
# Functions:

# --- Test Cases ---

class TestDBInitialization:
    def test_db_creation(self, tmp_path):
        db_path = tmp_path / "nested" / "library.sqlite"
        assert not db_path.exists()
        db = LibraryDB(db_path)
        assert db_path.exists()
        version = db.execute_query("SELECT version FROM db_schema_version").fetchone()['version']
        assert version == LibraryDB._CURRENT_SCHEMA_VERSION
        db.close_connection()

    def test_reopen_existing_db(self, tmp_path):
        db_path = tmp_path / "library.sqlite"
        first = LibraryDB(db_path)
        user = first.add_user("keep@example.com")
        first.close_connection()

        second = LibraryDB(db_path)
        assert second.get_user_by_id(user["id"])["email"] == "keep@example.com"
        second.close_connection()

    def test_newer_schema_version_is_refused(self, tmp_path):
        db_path = tmp_path / "library.sqlite"
        LibraryDB(db_path).close_connection()
        conn = sqlite3.connect(db_path)
        conn.execute("UPDATE db_schema_version SET version = 99")
        conn.commit()
        conn.close()

        with pytest.raises(LibraryDBError) as exc_info:
            LibraryDB(db_path)
        assert isinstance(exc_info.value.original_error, SchemaError)

    def test_memory_db(self):
        db = LibraryDB(":memory:")
        assert db.is_memory_db
        db.close_connection()


class TestUsers:
    def test_add_and_get_user(self, library_db):
        user = library_db.add_user("Someone@Example.com")
        assert user["email"] == "someone@example.com"
        assert library_db.get_user_by_email("SOMEONE@example.com")["id"] == user["id"]

    def test_duplicate_email_conflicts(self, library_db):
        library_db.add_user("dup@example.com")
        with pytest.raises(ConflictError) as exc_info:
            library_db.add_user("dup@example.com")
        assert exc_info.value.kind == ErrorKind.CONFLICT

    def test_ensure_user_for_email(self, library_db):
        user, created = library_db.ensure_user_for_email("first@example.com")
        assert created is True
        assert library_db.get_consent(user["id"])["share_for_research"] is False

        again, created_again = library_db.ensure_user_for_email("FIRST@example.com")
        assert created_again is False
        assert again["id"] == user["id"]


class TestFragments:
    def test_add_fragment_defaults(self, library_db, owner):
        fragment = library_db.add_fragment(owner["id"], {
            "title": "Untitled summer", "body": "Long days.", "event_at": datetime(2019, 6, 1, tzinfo=timezone.utc),
        })
        assert fragment["status"] == "PROCESSING"
        assert fragment["visibility"] == "PRIVATE"
        assert fragment["tags"] == []
        assert fragment["system_themes"] == []
        assert fragment["event_at"] == "2019-06-01T00:00:00.000Z"
        assert "embedding" not in fragment

    def test_add_fragment_requires_title_and_body(self, library_db, owner):
        with pytest.raises(LibraryDBError) as exc_info:
            library_db.add_fragment(owner["id"], {"title": " ", "body": "x", "event_at": "2020-01-01T00:00:00Z"})
        assert exc_info.value.kind == ErrorKind.VALIDATION

    def test_title_length_is_enforced(self, library_db, owner):
        with pytest.raises(LibraryDBError):
            make_fragment(library_db, owner, title="x" * 81)

    def test_invalid_visibility_is_rejected(self, library_db, owner):
        with pytest.raises(LibraryDBError):
            make_fragment(library_db, owner, visibility="FRIENDS")

    def test_update_is_owner_scoped_and_keeps_owner(self, library_db, owner, other_user):
        fragment = make_fragment(library_db, owner)
        assert library_db.update_fragment(fragment["id"], other_user["id"], {"title": "Nope"}) is None

        updated = library_db.update_fragment(fragment["id"], owner["id"],
                                             {"title": "Renamed", "user_id": other_user["id"], "tags": ["x"]})
        assert updated["title"] == "Renamed"
        assert updated["tags"] == ["x"]
        assert updated["user_id"] == owner["id"]
        assert updated["updated_at"] >= fragment["updated_at"]

    def test_delete_is_owner_scoped(self, library_db, owner, other_user):
        fragment = make_fragment(library_db, owner)
        assert library_db.delete_fragment(fragment["id"], other_user["id"]) is False
        assert library_db.delete_fragment(fragment["id"], owner["id"]) is True
        assert library_db.get_fragment_by_id(fragment["id"]) is None

    def test_set_fragment_status_validates(self, library_db, owner):
        fragment = make_fragment(library_db, owner)
        assert library_db.set_fragment_status(fragment["id"], "FAILED") is True
        with pytest.raises(LibraryDBError):
            library_db.set_fragment_status(fragment["id"], "DONE")

    def test_save_processing_results(self, library_db, owner):
        fragment = make_fragment(library_db, owner, status="PROCESSING")
        library_db.save_processing_results(fragment["id"], "words", [0.1, 0.2], ["joy"], ["growth"])

        stored = library_db.get_fragment_by_id(fragment["id"], include_embedding=True)
        assert stored["status"] == "READY"
        assert stored["transcript"] == "words"
        assert stored["embedding"] == [0.1, 0.2]
        assert stored["system_emotions"] == ["joy"]
        assert stored["system_themes"] == ["growth"]

    def test_list_fragments_text_match_escapes_wildcards(self, library_db, owner):
        make_fragment(library_db, owner, title="100% true story")
        make_fragment(library_db, owner, title="1000 true stories")
        titles = [f["title"] for f in library_db.list_fragments(owner["id"], q="0%")]
        assert titles == ["100% true story"]

    def test_list_fragments_matches_transcript(self, library_db, owner):
        fragment = make_fragment(library_db, owner, title="Voice note")
        library_db.save_processing_results(fragment["id"], "we sang by the fire", None, [], [])
        assert [f["id"] for f in library_db.list_fragments(owner["id"], q="FIRE")] == [fragment["id"]]

    def test_list_fragments_theme_overlap(self, library_db, owner):
        first = make_fragment(library_db, owner, title="One")
        make_fragment(library_db, owner, title="Two")
        library_db.save_processing_results(first["id"], "", None, ["joy"], ["travel", "family"])
        assert [f["title"] for f in library_db.list_fragments(owner["id"], themes=["family", "work"])] == ["One"]
        assert [f["title"] for f in library_db.list_fragments(owner["id"], emotions=["joy"])] == ["One"]

    def test_search_user_fragments_is_user_scoped(self, library_db, owner, other_user):
        make_fragment(library_db, owner, title="Harbor lights")
        make_fragment(library_db, other_user, title="Harbor fog", visibility="PUBLIC")
        rows = library_db.search_user_fragments(owner["id"], query="harbor")
        assert [r["title"] for r in rows] == ["Harbor lights"]

    def test_fragments_with_embeddings_only(self, library_db, owner):
        embedded = make_fragment(library_db, owner)
        make_fragment(library_db, owner)
        library_db.save_processing_results(embedded["id"], "", [1.0, 0.0], [], [])
        rows = library_db.get_user_fragments_with_embeddings(owner["id"])
        assert [r["id"] for r in rows] == [embedded["id"]]
        assert rows[0]["embedding"] == [1.0, 0.0]

    def test_insight_rows_oldest_first_with_range_and_themes(self, library_db, owner, other_user):
        early = make_fragment(library_db, owner, title="Early", tags=["lake"], system_themes=["family"])
        late = make_fragment(library_db, owner, title="Late", system_themes=["travel"])
        make_fragment(library_db, other_user, title="Not mine", system_themes=["family"])
        set_created_at(library_db, early["id"], "2021-01-01T00:00:00.000Z")
        set_created_at(library_db, late["id"], "2023-01-01T00:00:00.000Z")

        rows = library_db.get_fragment_insight_rows(owner["id"])
        assert [r["title"] for r in rows] == ["Early", "Late"]
        assert rows[0]["tags"] == ["lake"]
        assert rows[0]["system_themes"] == ["family"]

        ranged = library_db.get_fragment_insight_rows(owner["id"], created_from="2022-01-01T00:00:00Z")
        assert [r["title"] for r in ranged] == ["Late"]
        themed = library_db.get_fragment_insight_rows(owner["id"], themes=["family"])
        assert [r["title"] for r in themed] == ["Early"]


class TestLinks:
    def test_replace_links_removes_both_directions(self, library_db, owner):
        a = make_fragment(library_db, owner, title="A")
        b = make_fragment(library_db, owner, title="B")
        c = make_fragment(library_db, owner, title="C")
        library_db.replace_links_for_fragment(b["id"], [
            {"to_id": a["id"], "type": "SHARED_TAG", "score": 0.5, "reason": "Shares 2 tags: x, y"},
        ])

        library_db.replace_links_for_fragment(a["id"], [
            {"to_id": c["id"], "type": "SEMANTIC", "score": 0.8, "reason": "Semantic similarity: 80.0%"},
        ])

        assert library_db.get_links_from(b["id"]) == []
        links = library_db.get_links_from(a["id"])
        assert [(link["to_id"], link["type"]) for link in links] == [(c["id"], "SEMANTIC")]
        assert links[0]["to_fragment"]["title"] == "C"

    def test_duplicate_pair_keeps_last_score(self, library_db, owner):
        a = make_fragment(library_db, owner)
        b = make_fragment(library_db, owner)
        library_db.replace_links_for_fragment(a["id"], [
            {"to_id": b["id"], "type": "SHARED_TAG", "score": 0.5, "reason": "first"},
            {"to_id": b["id"], "type": "SHARED_TAG", "score": 1.0, "reason": "second"},
        ])
        links = library_db.get_links_from(a["id"])
        assert len(links) == 1
        assert links[0]["score"] == 1.0
        assert links[0]["reason"] == "second"

    def test_invalid_link_type_rolls_back(self, library_db, owner):
        a = make_fragment(library_db, owner)
        b = make_fragment(library_db, owner)
        library_db.replace_links_for_fragment(a["id"], [
            {"to_id": b["id"], "type": "SHARED_TAG", "score": 0.5, "reason": "kept"},
        ])
        with pytest.raises(LibraryDBError):
            library_db.replace_links_for_fragment(a["id"], [
                {"to_id": b["id"], "type": "FRIENDS", "score": 0.5, "reason": "bad"},
            ])
        assert [link["reason"] for link in library_db.get_links_from(a["id"])] == ["kept"]

    def test_links_to_hidden_fragments_are_omitted(self, library_db, owner, other_user):
        mine = make_fragment(library_db, owner, visibility="PUBLIC")
        hidden = make_fragment(library_db, owner, visibility="PRIVATE")
        library_db.replace_links_for_fragment(mine["id"], [
            {"to_id": hidden["id"], "type": "SHARED_TAG", "score": 0.5, "reason": "Shares 2 tags: a, b"},
        ])
        assert len(library_db.get_fragment_with_links(mine["id"], owner["id"])["links_from"]) == 1
        assert library_db.get_fragment_with_links(mine["id"], other_user["id"])["links_from"] == []


class TestAuditAndSearchLogs:
    def test_audit_events(self, library_db, owner):
        library_db.add_audit_event(owner["id"], "login_link_used", "jti-1", {"new_user": True})
        assert library_db.has_audit_event("login_link_used", "jti-1")
        assert not library_db.has_audit_event("login_link_used", "jti-2")
        events = library_db.list_audit_events(user_id=owner["id"])
        assert events[0]["meta"] == {"new_user": True}

    def test_login_link_event_is_unique_per_token(self, library_db, owner):
        library_db.add_audit_event(owner["id"], "login_link_used", "jti-1")
        with pytest.raises(ConflictError):
            library_db.add_audit_event(owner["id"], "login_link_used", "jti-1")
        library_db.add_audit_event(owner["id"], "fragment_deleted", "frag-1")
        library_db.add_audit_event(owner["id"], "fragment_deleted", "frag-1")
        assert len(library_db.list_audit_events(action="login_link_used")) == 1
        assert len(library_db.list_audit_events(action="fragment_deleted")) == 2

    def test_search_logs_since(self, library_db, owner):
        library_db.add_search_log(owner["id"], "family", {"themes": ["Family"]}, 3, 12.5, "hybrid", 0.7)
        logs = library_db.list_search_logs(owner["id"])
        assert logs[0]["filters"] == {"themes": ["Family"]}
        assert logs[0]["results_count"] == 3

        future = datetime.now(timezone.utc) + timedelta(hours=1)
        assert library_db.list_search_logs(owner["id"], since=future) == []

#
# End of test_library_db.py
#######################################################################################################################
