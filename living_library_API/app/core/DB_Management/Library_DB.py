# Library_DB.py
# Description: DB Library for users, consent, fragments, links, audit events and search logs.
#
# Imports
import json
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
#
# Third-Party Libraries
from loguru import logger
#
# Local Imports
from living_library_API.app.core.exceptions import ErrorKind, LibraryError
from living_library_API.app.core.Utils.Utils import escape_like, to_utc_iso, utc_now
#
########################################################################################################################
#
# Functions:

VISIBILITY_VALUES = ("PRIVATE", "UNLISTED", "PUBLIC")
STATUS_VALUES = ("PROCESSING", "READY", "FAILED")
LINK_TYPES = ("SEMANTIC", "SHARED_TAG", "SAME_TIMEWINDOW", "SAME_LOCATION")


# --- Custom Exceptions ---
class LibraryDBError(LibraryError):
    """Base exception for LibraryDB related errors."""
    default_kind = ErrorKind.INTERNAL


class SchemaError(LibraryDBError):
    """Exception for schema version mismatches or migration failures."""
    pass


class ConflictError(LibraryDBError):
    """Indicates a unique constraint was violated."""
    default_kind = ErrorKind.CONFLICT

    def __init__(self, message="Conflict detected.", entity: Optional[str] = None, entity_id: Any = None, **kwargs):
        context = kwargs.pop('context', {})
        if entity:
            context['entity'] = entity
        if entity_id is not None:
            context['entity_id'] = entity_id
        super().__init__(message, context=context, **kwargs)
        self.entity = entity
        self.entity_id = entity_id


class LibraryDB:
    """
    Persistence gateway for the Living Library.

    One SQLite connection per thread (``threading.local``). All multi-statement
    writes go through ``transaction()``; reads go through ``execute_query``.
    JSON columns (tags, themes, emotions, media, embedding, meta, filters) are
    decoded on the way out.
    """
    _SCHEMA_NAME = "living_library_schema"
    _CURRENT_SCHEMA_VERSION = 1

    _FULL_SCHEMA_SQL_V1 = f"""
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS db_schema_version(
  schema_name TEXT PRIMARY KEY NOT NULL,
  version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS app_user(
  id TEXT PRIMARY KEY,
  email TEXT UNIQUE NOT NULL COLLATE NOCASE,
  created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS consent(
  id TEXT PRIMARY KEY,
  user_id TEXT UNIQUE NOT NULL REFERENCES app_user(id) ON DELETE CASCADE,
  share_for_research INTEGER NOT NULL DEFAULT 0,
  allow_model_training INTEGER NOT NULL DEFAULT 0,
  receive_study_invites INTEGER NOT NULL DEFAULT 0,
  updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS fragment(
  id TEXT PRIMARY KEY,
  user_id TEXT NOT NULL REFERENCES app_user(id) ON DELETE CASCADE,
  title TEXT NOT NULL CHECK (length(title) <= 80),
  body TEXT NOT NULL,
  transcript TEXT NOT NULL DEFAULT '',
  event_at TEXT NOT NULL,
  location_text TEXT,
  lat REAL,
  lng REAL,
  visibility TEXT NOT NULL DEFAULT 'PRIVATE' CHECK (visibility IN {VISIBILITY_VALUES}),
  tags TEXT NOT NULL DEFAULT '[]',
  system_emotions TEXT NOT NULL DEFAULT '[]',
  system_themes TEXT NOT NULL DEFAULT '[]',
  life_stage TEXT,
  media TEXT NOT NULL DEFAULT '[]',
  embedding TEXT,
  status TEXT NOT NULL DEFAULT 'READY' CHECK (status IN {STATUS_VALUES}),
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS fragment_event_idx ON fragment(event_at DESC);
CREATE INDEX IF NOT EXISTS fragment_visibility_idx ON fragment(visibility);
CREATE INDEX IF NOT EXISTS fragment_user_status_idx ON fragment(user_id, status);

CREATE TABLE IF NOT EXISTS link(
  id TEXT PRIMARY KEY,
  from_id TEXT NOT NULL REFERENCES fragment(id) ON DELETE CASCADE,
  to_id TEXT NOT NULL REFERENCES fragment(id) ON DELETE CASCADE,
  type TEXT NOT NULL CHECK (type IN {LINK_TYPES}),
  score REAL NOT NULL,
  reason TEXT NOT NULL,
  created_at TEXT NOT NULL,
  UNIQUE(from_id, to_id, type)
);
CREATE INDEX IF NOT EXISTS link_from_id_idx ON link(from_id);
CREATE INDEX IF NOT EXISTS link_to_id_idx ON link(to_id);

CREATE TABLE IF NOT EXISTS audit_event(
  id TEXT PRIMARY KEY,
  user_id TEXT REFERENCES app_user(id) ON DELETE SET NULL,
  action TEXT NOT NULL,
  subject_id TEXT,
  meta TEXT NOT NULL DEFAULT '{{}}',
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS audit_event_action_idx ON audit_event(action, subject_id);
-- A login link token (its jti) can be redeemed once
CREATE UNIQUE INDEX IF NOT EXISTS audit_event_login_link_once_idx ON audit_event(subject_id)
  WHERE action = 'login_link_used';

CREATE TABLE IF NOT EXISTS search_log(
  id TEXT PRIMARY KEY,
  user_id TEXT NOT NULL REFERENCES app_user(id) ON DELETE CASCADE,
  query TEXT NOT NULL,
  filters TEXT NOT NULL DEFAULT '{{}}',
  results_count INTEGER NOT NULL DEFAULT 0,
  search_time_ms REAL NOT NULL DEFAULT 0,
  search_method TEXT,
  relevance_score REAL,
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS search_log_user_created_idx ON search_log(user_id, created_at);

INSERT OR REPLACE INTO db_schema_version (schema_name, version) VALUES ('{_SCHEMA_NAME}', {_CURRENT_SCHEMA_VERSION});
"""

    _FRAGMENT_COLUMNS = (
        "id, user_id, title, body, transcript, event_at, location_text, lat, lng, visibility, tags, "
        "system_emotions, system_themes, life_stage, media, status, created_at, updated_at"
    )
    _FRAGMENT_SUMMARY_COLUMNS = "id, title, body, event_at, visibility, tags, system_emotions, system_themes"
    _FRAGMENT_JSON_FIELDS = ['tags', 'system_emotions', 'system_themes', 'media', 'embedding']
    _LIST_FIELDS = ('tags', 'system_emotions', 'system_themes', 'media')

    # Columns a fragment update may touch. user_id is deliberately absent.
    _UPDATABLE_FRAGMENT_COLUMNS = (
        'title', 'body', 'event_at', 'location_text', 'lat', 'lng', 'visibility', 'tags', 'media', 'status',
    )

    def __init__(self, db_path: Union[str, Path]):
        if isinstance(db_path, Path):
            self.is_memory_db = False
            self.db_path = db_path.resolve()
        else:
            self.is_memory_db = (db_path == ':memory:')
            self.db_path = Path(db_path).resolve() if not self.is_memory_db else Path(":memory:")
        self.db_path_str = str(self.db_path) if not self.is_memory_db else ':memory:'

        if not self.is_memory_db:
            try:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LibraryDBError(f"Failed to create database directory {self.db_path.parent}: {e}",
                                     original_error=e)

        logger.info(f"Initializing LibraryDB for path: {self.db_path_str}")
        self._local = threading.local()
        try:
            self._initialize_schema()
            logger.debug(f"LibraryDB initialization completed successfully for {self.db_path_str}")
        except (LibraryDBError, sqlite3.Error) as e:
            logger.critical(f"FATAL: DB Initialization failed for {self.db_path_str}: {e}")
            self.close_connection()
            raise LibraryDBError(f"Database initialization failed: {e}", original_error=e) from e

    # --- Connection Management ---
    def _get_thread_connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn:
            try:
                conn.execute("SELECT 1")
            except (sqlite3.ProgrammingError, sqlite3.OperationalError):
                logger.warning(f"Thread-local connection for {self.db_path_str} became unusable. Reopening.")
                conn = None

        if not conn:
            try:
                conn = sqlite3.connect(self.db_path_str, check_same_thread=False, timeout=15)
                conn.row_factory = sqlite3.Row
                if not self.is_memory_db:
                    conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA foreign_keys = ON;")
                self._local.conn = conn
                logger.debug(f"Opened SQLite connection to {self.db_path_str} for thread {threading.get_ident()}")
            except sqlite3.Error as e:
                logger.error(f"Failed to connect to database {self.db_path_str}: {e}")
                self._local.conn = None
                raise LibraryDBError(f"Failed to connect to database '{self.db_path_str}': {e}",
                                     original_error=e) from e
        return self._local.conn

    def get_connection(self) -> sqlite3.Connection:
        return self._get_thread_connection()

    def close_connection(self):
        conn = getattr(self._local, 'conn', None)
        if conn is not None:
            try:
                if conn.in_transaction:
                    logger.warning(f"Connection to {self.db_path_str} has an open transaction during close. Rolling back.")
                    conn.rollback()
                conn.close()
                logger.debug(f"Closed connection for thread {threading.get_ident()} to {self.db_path_str}.")
            except sqlite3.Error as e:
                logger.warning(f"Error during SQLite connection close for {self.db_path_str}: {e}")
            finally:
                self._local.conn = None

    # --- Query Execution ---
    def execute_query(self, query: str, params: Optional[Union[tuple, Dict[str, Any]]] = None,
                      conn: Optional[sqlite3.Connection] = None) -> sqlite3.Cursor:
        """
        Executes a single statement. Pass ``conn`` from ``transaction()`` to run inside it;
        statements run outside a transaction are committed immediately.
        """
        own_connection = conn is None
        conn = conn or self.get_connection()
        try:
            logger.trace(f"Executing SQL: {query[:300]} Params: {str(params)[:200]}")
            cursor = conn.execute(query, params or ())
            if own_connection and conn.in_transaction:
                conn.commit()
            return cursor
        except sqlite3.IntegrityError as e:
            logger.warning(f"Integrity constraint violation: {query[:300]}... Error: {e}")
            if own_connection and conn.in_transaction:
                conn.rollback()
            if "unique constraint failed" in str(e).lower():
                raise ConflictError(f"Unique constraint violation: {e}", original_error=e) from e
            raise LibraryDBError(f"Database constraint violation: {e}", original_error=e) from e
        except sqlite3.Error as e:
            logger.error(f"Query execution failed: {query[:300]}... Error: {e}")
            if own_connection and conn.in_transaction:
                conn.rollback()
            raise LibraryDBError(f"Query execution failed: {e}", original_error=e) from e

    def transaction(self) -> 'TransactionContextManager':
        return TransactionContextManager(self)

    # --- Schema Initialization ---
    def _get_db_version(self, conn: sqlite3.Connection) -> int:
        try:
            cursor = conn.execute("SELECT version FROM db_schema_version WHERE schema_name = ? LIMIT 1",
                                  (self._SCHEMA_NAME,))
            result = cursor.fetchone()
            return result['version'] if result else 0
        except sqlite3.Error as e:
            if "no such table" in str(e).lower():
                return 0
            raise SchemaError(f"Could not determine schema version for '{self._SCHEMA_NAME}': {e}",
                              original_error=e) from e

    def _initialize_schema(self):
        conn = self.get_connection()
        current_version = self._get_db_version(conn)
        target_version = self._CURRENT_SCHEMA_VERSION
        logger.info(f"Checking DB schema '{self._SCHEMA_NAME}'. Current version: {current_version}. Code supports: {target_version}")

        if current_version == target_version:
            logger.debug(f"Database schema '{self._SCHEMA_NAME}' is up to date.")
            return
        if current_version > target_version:
            raise SchemaError(
                f"Database schema '{self._SCHEMA_NAME}' version ({current_version}) is newer than supported by code ({target_version}).")

        try:
            conn.executescript(self._FULL_SCHEMA_SQL_V1)
        except sqlite3.Error as e:
            raise SchemaError(f"DB schema V1 setup failed for '{self._SCHEMA_NAME}': {e}", original_error=e) from e

        final_version = self._get_db_version(conn)
        if final_version != target_version:
            raise SchemaError(f"Schema version check failed. Expected {target_version}, got: {final_version}")
        logger.info(f"Database schema '{self._SCHEMA_NAME}' initialized to version {final_version}.")

    # --- Internal Helpers ---
    def _get_current_utc_timestamp_iso(self) -> str:
        return to_utc_iso(utc_now())

    def _generate_uuid(self) -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _ensure_json_string(data: Any) -> Optional[str]:
        if data is None:
            return None
        if isinstance(data, (set, tuple)):
            data = list(data)
        return json.dumps(data)

    def _deserialize_row_fields(self, row: Optional[sqlite3.Row], json_fields: Sequence[str]) -> Optional[Dict[str, Any]]:
        if not row:
            return None
        item = dict(row)
        for field in json_fields:
            if field in item and isinstance(item[field], str):
                try:
                    item[field] = json.loads(item[field])
                except json.JSONDecodeError:
                    logger.warning(f"Failed to decode JSON for field '{field}' in row (ID: {item.get('id', 'N/A')}).")
                    item[field] = None
        for field in self._LIST_FIELDS:
            if field in item and item[field] is None:
                item[field] = []
        return item

    def _fragment_from_row(self, row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
        return self._deserialize_row_fields(row, self._FRAGMENT_JSON_FIELDS)

    @staticmethod
    def _overlap_clause(column: str, values: Sequence[str]) -> Tuple[str, List[Any]]:
        placeholders = ", ".join("?" for _ in values)
        clause = f"EXISTS (SELECT 1 FROM json_each(fragment.{column}) je WHERE je.value IN ({placeholders}))"
        return clause, list(values)

    # --- User Methods ---
    def add_user(self, email: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """Creates an app_user row. Raises ConflictError if the email is already registered."""
        if not email or not email.strip():
            raise LibraryDBError("Email is required to create a user.", kind=ErrorKind.VALIDATION)
        user = {
            "id": user_id or self._generate_uuid(),
            "email": email.strip().lower(),
            "created_at": self._get_current_utc_timestamp_iso(),
        }
        self.execute_query("INSERT INTO app_user (id, email, created_at) VALUES (?, ?, ?)",
                           (user["id"], user["email"], user["created_at"]))
        logger.info(f"Created app_user {user['id']}")
        return user

    def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = self.execute_query("SELECT id, email, created_at FROM app_user WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        row = self.execute_query("SELECT id, email, created_at FROM app_user WHERE email = ?",
                                 (email.strip().lower(),)).fetchone()
        return dict(row) if row else None

    def ensure_user_for_email(self, email: str) -> Tuple[Dict[str, Any], bool]:
        """
        Returns (user, created). A newly created user also gets the default
        all-false consent record.
        """
        normalized = email.strip().lower()
        with self.transaction() as conn:
            row = self.execute_query("SELECT id, email, created_at FROM app_user WHERE email = ?",
                                     (normalized,), conn=conn).fetchone()
            if row:
                return dict(row), False
            now = self._get_current_utc_timestamp_iso()
            user = {"id": self._generate_uuid(), "email": normalized, "created_at": now}
            self.execute_query("INSERT INTO app_user (id, email, created_at) VALUES (?, ?, ?)",
                               (user["id"], user["email"], user["created_at"]), conn=conn)
            self.execute_query(
                "INSERT INTO consent (id, user_id, share_for_research, allow_model_training, receive_study_invites, updated_at) "
                "VALUES (?, ?, 0, 0, 0, ?)",
                (self._generate_uuid(), user["id"], now), conn=conn)
        logger.info(f"Created app_user {user['id']} with default consent")
        return user, True

    def get_consent(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = self.execute_query(
            "SELECT user_id, share_for_research, allow_model_training, receive_study_invites, updated_at "
            "FROM consent WHERE user_id = ?", (user_id,)).fetchone()
        if not row:
            return None
        consent = dict(row)
        for key in ('share_for_research', 'allow_model_training', 'receive_study_invites'):
            consent[key] = bool(consent[key])
        return consent

    # --- Fragment Methods ---
    def add_fragment(self, user_id: str, fragment_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Inserts a fragment owned by ``user_id`` and returns the stored row.

        ``fragment_data`` uses column names (title, body, event_at, location_text,
        lat, lng, visibility, tags, media, status).
        """
        title = (fragment_data.get('title') or '').strip()
        body = fragment_data.get('body') or ''
        if not title or not body.strip():
            raise LibraryDBError("Fragment title and body are required.", kind=ErrorKind.VALIDATION)
        if fragment_data.get('event_at') is None:
            raise LibraryDBError("Fragment event_at is required.", kind=ErrorKind.VALIDATION)

        fragment_id = fragment_data.get('id') or self._generate_uuid()
        now = self._get_current_utc_timestamp_iso()
        params = (
            fragment_id,
            user_id,
            fragment_data['title'],
            body,
            fragment_data.get('transcript') or '',
            to_utc_iso(fragment_data['event_at']),
            fragment_data.get('location_text'),
            fragment_data.get('lat'),
            fragment_data.get('lng'),
            fragment_data.get('visibility') or 'PRIVATE',
            self._ensure_json_string(fragment_data.get('tags') or []),
            self._ensure_json_string(fragment_data.get('system_emotions') or []),
            self._ensure_json_string(fragment_data.get('system_themes') or []),
            fragment_data.get('life_stage'),
            self._ensure_json_string(fragment_data.get('media') or []),
            fragment_data.get('status') or 'PROCESSING',
            now,
            now,
        )
        self.execute_query(
            "INSERT INTO fragment (id, user_id, title, body, transcript, event_at, location_text, lat, lng, visibility, "
            "tags, system_emotions, system_themes, life_stage, media, status, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            params)
        logger.info(f"Fragment {fragment_id} created for user {user_id}")
        return self.get_fragment_by_id(fragment_id)

    def get_fragment_by_id(self, fragment_id: str, include_embedding: bool = False) -> Optional[Dict[str, Any]]:
        columns = self._FRAGMENT_COLUMNS + (", embedding" if include_embedding else "")
        row = self.execute_query(f"SELECT {columns} FROM fragment WHERE id = ?", (fragment_id,)).fetchone()
        return self._fragment_from_row(row)

    def get_fragment_with_links(self, fragment_id: str, viewer_id: str) -> Optional[Dict[str, Any]]:
        """
        Fetches a fragment visible to ``viewer_id`` (owned, or PUBLIC) together with
        its outbound (``links_from``) and inbound (``links_to``) links. Links whose
        other end is not visible to the viewer are left out.
        """
        fragment = self.get_fragment_by_id(fragment_id)
        if not fragment:
            return None
        if fragment['user_id'] != viewer_id and fragment['visibility'] != 'PUBLIC':
            return None

        summary_cols = ", ".join(f"f.{c.strip()} AS f_{c.strip()}" for c in self._FRAGMENT_SUMMARY_COLUMNS.split(","))
        visible = "(f.visibility = 'PUBLIC' OR f.user_id = ?)"

        outbound = self.execute_query(
            f"SELECT l.id, l.to_id, l.type, l.score, l.reason, {summary_cols} FROM link l "
            f"JOIN fragment f ON f.id = l.to_id WHERE l.from_id = ? AND {visible} ORDER BY l.score DESC",
            (fragment_id, viewer_id)).fetchall()
        inbound = self.execute_query(
            f"SELECT l.id, l.from_id, l.type, l.score, l.reason, {summary_cols} FROM link l "
            f"JOIN fragment f ON f.id = l.from_id WHERE l.to_id = ? AND {visible} ORDER BY l.score DESC",
            (fragment_id, viewer_id)).fetchall()

        fragment['links_from'] = [self._link_with_summary(row, 'to_id', 'to_fragment') for row in outbound]
        fragment['links_to'] = [self._link_with_summary(row, 'from_id', 'from_fragment') for row in inbound]
        return fragment

    def _link_with_summary(self, row: sqlite3.Row, other_id_col: str, summary_key: str) -> Dict[str, Any]:
        item = dict(row)
        summary = {}
        for key in list(item.keys()):
            if key.startswith('f_'):
                summary[key[2:]] = item.pop(key)
        for field in ('tags', 'system_emotions', 'system_themes'):
            try:
                summary[field] = json.loads(summary.get(field) or '[]')
            except json.JSONDecodeError:
                summary[field] = []
        return {
            "id": item['id'],
            other_id_col: item[other_id_col],
            "type": item['type'],
            "score": item['score'],
            "reason": item['reason'],
            summary_key: summary,
        }

    def list_fragments(self, viewer_id: str, q: str = '', visibility: Optional[str] = None,
                       tags: Optional[List[str]] = None, emotions: Optional[List[str]] = None,
                       themes: Optional[List[str]] = None, date_from=None, date_to=None,
                       limit: int = 20, offset: int = 0) -> List[Dict[str, Any]]:
        """Lists fragments visible to ``viewer_id``, newest event first."""
        clauses = ["(fragment.user_id = ? OR fragment.visibility = 'PUBLIC')"]
        params: List[Any] = [viewer_id]

        if visibility:
            clauses.append("fragment.visibility = ?")
            params.append(visibility)
        for column, values in (('tags', tags), ('system_emotions', emotions), ('system_themes', themes)):
            if values:
                clause, clause_params = self._overlap_clause(column, values)
                clauses.append(clause)
                params.extend(clause_params)
        if date_from is not None:
            clauses.append("fragment.event_at >= ?")
            params.append(to_utc_iso(date_from))
        if date_to is not None:
            clauses.append("fragment.event_at <= ?")
            params.append(to_utc_iso(date_to))
        if q:
            pattern = f"%{escape_like(q)}%"
            clauses.append("(fragment.title LIKE ? ESCAPE '\\' OR fragment.body LIKE ? ESCAPE '\\' "
                           "OR fragment.transcript LIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern, pattern])

        query = (f"SELECT {self._FRAGMENT_COLUMNS} FROM fragment WHERE {' AND '.join(clauses)} "
                 f"ORDER BY fragment.event_at DESC LIMIT ? OFFSET ?")
        params.extend([limit, offset])
        rows = self.execute_query(query, tuple(params)).fetchall()
        return [self._fragment_from_row(row) for row in rows]

    def update_fragment(self, fragment_id: str, user_id: str, update_data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Updates a fragment matching both ``fragment_id`` and owner ``user_id``.
        Returns the updated row, or None when no row matched.
        """
        assignments = []
        params: List[Any] = []
        for column in self._UPDATABLE_FRAGMENT_COLUMNS:
            if column not in update_data:
                continue
            value = update_data[column]
            if column in ('tags', 'media'):
                value = self._ensure_json_string(value or [])
            elif column == 'event_at' and value is not None:
                value = to_utc_iso(value)
            assignments.append(f"{column} = ?")
            params.append(value)

        ignored = set(update_data) - set(self._UPDATABLE_FRAGMENT_COLUMNS)
        if ignored:
            logger.debug(f"update_fragment ignoring non-updatable fields: {sorted(ignored)}")

        assignments.append("updated_at = ?")
        params.append(self._get_current_utc_timestamp_iso())
        params.extend([fragment_id, user_id])

        cursor = self.execute_query(
            f"UPDATE fragment SET {', '.join(assignments)} WHERE id = ? AND user_id = ?", tuple(params))
        if cursor.rowcount == 0:
            return None
        logger.info(f"Fragment {fragment_id} updated by owner {user_id}")
        return self.get_fragment_by_id(fragment_id)

    def set_fragment_status(self, fragment_id: str, status: str) -> bool:
        if status not in STATUS_VALUES:
            raise LibraryDBError(f"Invalid fragment status: {status}", kind=ErrorKind.VALIDATION)
        cursor = self.execute_query("UPDATE fragment SET status = ?, updated_at = ? WHERE id = ?",
                                    (status, self._get_current_utc_timestamp_iso(), fragment_id))
        return cursor.rowcount > 0

    def save_processing_results(self, fragment_id: str, transcript: str, embedding: Optional[List[float]],
                                emotions: List[str], themes: List[str], status: str = 'READY') -> Optional[Dict[str, Any]]:
        cursor = self.execute_query(
            "UPDATE fragment SET transcript = ?, embedding = ?, system_emotions = ?, system_themes = ?, status = ?, "
            "updated_at = ? WHERE id = ?",
            (transcript or '', self._ensure_json_string(embedding) if embedding else None,
             self._ensure_json_string(emotions or []), self._ensure_json_string(themes or []), status,
             self._get_current_utc_timestamp_iso(), fragment_id))
        if cursor.rowcount == 0:
            return None
        return self.get_fragment_by_id(fragment_id)

    def delete_fragment(self, fragment_id: str, user_id: str) -> bool:
        """Deletes an owned fragment. Links cascade through the foreign keys."""
        cursor = self.execute_query("DELETE FROM fragment WHERE id = ? AND user_id = ?", (fragment_id, user_id))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Fragment {fragment_id} deleted by owner {user_id}")
        return deleted

    def get_fragment_facet_rows(self, user_id: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Theme/emotion/date/body rows for one user's fragments, in creation order."""
        query = ("SELECT id, title, body, system_themes, system_emotions, created_at FROM fragment "
                 "WHERE user_id = ? ORDER BY created_at ASC")
        params: List[Any] = [user_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        rows = self.execute_query(query, tuple(params)).fetchall()
        return [self._deserialize_row_fields(row, ['system_themes', 'system_emotions']) for row in rows]

    def get_fragment_insight_rows(self, user_id: str, created_from=None, created_to=None,
                                  themes: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """One user's fragments for insights analysis, oldest first, optionally within a created_at range."""
        clauses = ["fragment.user_id = ?"]
        params: List[Any] = [user_id]
        if themes:
            clause, clause_params = self._overlap_clause('system_themes', themes)
            clauses.append(clause)
            params.extend(clause_params)
        if created_from is not None:
            clauses.append("fragment.created_at >= ?")
            params.append(to_utc_iso(created_from))
        if created_to is not None:
            clauses.append("fragment.created_at <= ?")
            params.append(to_utc_iso(created_to))
        rows = self.execute_query(
            "SELECT id, title, body, tags, system_themes, system_emotions, created_at FROM fragment "
            f"WHERE {' AND '.join(clauses)} ORDER BY fragment.created_at ASC", tuple(params)).fetchall()
        return [self._deserialize_row_fields(row, ['tags', 'system_themes', 'system_emotions']) for row in rows]

    def search_user_fragments(self, user_id: str, query: str = '', themes: Optional[List[str]] = None,
                              emotions: Optional[List[str]] = None, created_from=None, created_to=None,
                              limit: int = 20) -> List[Dict[str, Any]]:
        """User-scoped text search over title/body with theme/emotion overlap and created_at range."""
        clauses = ["fragment.user_id = ?"]
        params: List[Any] = [user_id]
        if query:
            pattern = f"%{escape_like(query)}%"
            clauses.append("(fragment.title LIKE ? ESCAPE '\\' OR fragment.body LIKE ? ESCAPE '\\')")
            params.extend([pattern, pattern])
        for column, values in (('system_themes', themes), ('system_emotions', emotions)):
            if values:
                clause, clause_params = self._overlap_clause(column, values)
                clauses.append(clause)
                params.extend(clause_params)
        if created_from is not None:
            clauses.append("fragment.created_at >= ?")
            params.append(to_utc_iso(created_from))
        if created_to is not None:
            clauses.append("fragment.created_at <= ?")
            params.append(to_utc_iso(created_to))
        params.append(limit)
        rows = self.execute_query(
            "SELECT id, title, body, system_themes, system_emotions, created_at, updated_at, user_id FROM fragment "
            f"WHERE {' AND '.join(clauses)} ORDER BY fragment.created_at DESC LIMIT ?", tuple(params)).fetchall()
        return [self._deserialize_row_fields(row, ['system_themes', 'system_emotions']) for row in rows]

    def get_user_fragments_with_embeddings(self, user_id: str, themes: Optional[List[str]] = None,
                                           emotions: Optional[List[str]] = None, created_from=None,
                                           created_to=None) -> List[Dict[str, Any]]:
        clauses = ["fragment.user_id = ?", "fragment.embedding IS NOT NULL"]
        params: List[Any] = [user_id]
        for column, values in (('system_themes', themes), ('system_emotions', emotions)):
            if values:
                clause, clause_params = self._overlap_clause(column, values)
                clauses.append(clause)
                params.extend(clause_params)
        if created_from is not None:
            clauses.append("fragment.created_at >= ?")
            params.append(to_utc_iso(created_from))
        if created_to is not None:
            clauses.append("fragment.created_at <= ?")
            params.append(to_utc_iso(created_to))
        rows = self.execute_query(
            "SELECT id, title, body, system_themes, system_emotions, created_at, updated_at, user_id, embedding "
            f"FROM fragment WHERE {' AND '.join(clauses)}", tuple(params)).fetchall()
        return [self._deserialize_row_fields(row, ['system_themes', 'system_emotions', 'embedding']) for row in rows]

    def get_candidate_link_fragments(self, fragment_id: str, owner_id: str) -> List[Dict[str, Any]]:
        """Every other fragment visible to the owner of ``fragment_id`` (PUBLIC or same owner)."""
        rows = self.execute_query(
            "SELECT id, user_id, tags, event_at, lat, lng, status, embedding, visibility FROM fragment "
            "WHERE id != ? AND (visibility = 'PUBLIC' OR user_id = ?)", (fragment_id, owner_id)).fetchall()
        return [self._deserialize_row_fields(row, ['tags', 'embedding']) for row in rows]

    # --- Link Methods ---
    def replace_links_for_fragment(self, fragment_id: str, links: List[Dict[str, Any]]) -> int:
        """
        Removes every link touching ``fragment_id`` (either direction) and inserts
        ``links`` as outbound links. Duplicate (to_id, type) pairs keep the last score.
        """
        now = self._get_current_utc_timestamp_iso()
        with self.transaction() as conn:
            self.execute_query("DELETE FROM link WHERE from_id = ? OR to_id = ?", (fragment_id, fragment_id), conn=conn)
            for link in links:
                if link['type'] not in LINK_TYPES:
                    raise LibraryDBError(f"Invalid link type: {link['type']}", kind=ErrorKind.VALIDATION)
                self.execute_query(
                    "INSERT INTO link (id, from_id, to_id, type, score, reason, created_at) VALUES (?, ?, ?, ?, ?, ?, ?) "
                    "ON CONFLICT(from_id, to_id, type) DO UPDATE SET score = excluded.score, reason = excluded.reason",
                    (self._generate_uuid(), fragment_id, link['to_id'], link['type'], float(link['score']),
                     link['reason'], now), conn=conn)
        logger.debug(f"Replaced links for fragment {fragment_id}: {len(links)} written")
        return len(links)

    def get_links_from(self, fragment_id: str) -> List[Dict[str, Any]]:
        """Outbound links of a fragment with a summary of each target, highest score first."""
        summary_cols = ", ".join(f"f.{c.strip()} AS f_{c.strip()}" for c in self._FRAGMENT_SUMMARY_COLUMNS.split(","))
        rows = self.execute_query(
            f"SELECT l.id, l.to_id, l.type, l.score, l.reason, l.created_at, {summary_cols} FROM link l "
            "JOIN fragment f ON f.id = l.to_id WHERE l.from_id = ? ORDER BY l.score DESC", (fragment_id,)).fetchall()
        links = []
        for row in rows:
            link = self._link_with_summary(row, 'to_id', 'to_fragment')
            link['created_at'] = row['created_at']
            links.append(link)
        return links

    # --- Audit Methods ---
    def add_audit_event(self, user_id: Optional[str], action: str, subject_id: Optional[str] = None,
                        meta: Optional[Dict[str, Any]] = None) -> str:
        event_id = self._generate_uuid()
        self.execute_query(
            "INSERT INTO audit_event (id, user_id, action, subject_id, meta, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (event_id, user_id, action, subject_id, self._ensure_json_string(meta or {}),
             self._get_current_utc_timestamp_iso()))
        logger.debug(f"Audit event '{action}' recorded for subject {subject_id}")
        return event_id

    def list_audit_events(self, user_id: Optional[str] = None, action: Optional[str] = None,
                          subject_id: Optional[str] = None) -> List[Dict[str, Any]]:
        clauses, params = [], []
        for column, value in (('user_id', user_id), ('action', action), ('subject_id', subject_id)):
            if value is not None:
                clauses.append(f"{column} = ?")
                params.append(value)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.execute_query(
            f"SELECT id, user_id, action, subject_id, meta, created_at FROM audit_event {where} ORDER BY created_at ASC",
            tuple(params)).fetchall()
        return [self._deserialize_row_fields(row, ['meta']) for row in rows]

    def has_audit_event(self, action: str, subject_id: str) -> bool:
        row = self.execute_query("SELECT 1 FROM audit_event WHERE action = ? AND subject_id = ? LIMIT 1",
                                 (action, subject_id)).fetchone()
        return row is not None

    # --- Search Log Methods ---
    def add_search_log(self, user_id: str, query: str, filters: Optional[Dict[str, Any]], results_count: int,
                       search_time_ms: float, search_method: Optional[str],
                       relevance_score: Optional[float]) -> str:
        log_id = self._generate_uuid()
        self.execute_query(
            "INSERT INTO search_log (id, user_id, query, filters, results_count, search_time_ms, search_method, "
            "relevance_score, created_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (log_id, user_id, query, json.dumps(filters or {}, default=str), int(results_count),
             float(search_time_ms), search_method, relevance_score, self._get_current_utc_timestamp_iso()))
        return log_id

    def list_search_logs(self, user_id: str, since=None) -> List[Dict[str, Any]]:
        query = ("SELECT id, user_id, query, filters, results_count, search_time_ms, search_method, relevance_score, "
                 "created_at FROM search_log WHERE user_id = ?")
        params: List[Any] = [user_id]
        if since is not None:
            query += " AND created_at >= ?"
            params.append(to_utc_iso(since))
        query += " ORDER BY created_at ASC"
        rows = self.execute_query(query, tuple(params)).fetchall()
        return [self._deserialize_row_fields(row, ['filters']) for row in rows]


class TransactionContextManager:
    def __init__(self, db_instance: LibraryDB):
        self.db = db_instance
        self.conn: Optional[sqlite3.Connection] = None
        self.is_outermost_transaction = False

    def __enter__(self) -> sqlite3.Connection:
        self.conn = self.db.get_connection()
        if not self.conn.in_transaction:
            self.conn.execute("BEGIN")
            self.is_outermost_transaction = True
            logger.trace(f"Transaction started on thread {threading.get_ident()}.")
        return self.conn

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.conn or not self.is_outermost_transaction:
            return False
        if exc_type:
            logger.warning(f"Transaction failed, rolling back: {exc_type.__name__} - {exc_val}")
            try:
                self.conn.rollback()
            except sqlite3.Error as rb_err:
                logger.critical(f"Rollback FAILED on thread {threading.get_ident()}: {rb_err}")
            return False
        try:
            self.conn.commit()
        except sqlite3.Error as commit_err:
            logger.error(f"Commit FAILED on thread {threading.get_ident()}, rolling back: {commit_err}")
            self.conn.rollback()
            raise LibraryDBError(f"Commit failed: {commit_err}", original_error=commit_err) from commit_err
        return False

#
# End of Library_DB.py
########################################################################################################################
