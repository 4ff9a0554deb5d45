"""Writing users' folder and document trees into a 3.4 application database."""

from __future__ import annotations

import datetime as _dt
import sqlite3
import sys
import uuid
from collections.abc import Iterable
from contextlib import closing
from typing import Any

from pmdump.models_v3 import (
    DocumentVersion,
    Node,
    NodeType,
    Page,
    TargetUser,
    TargetUserList,
    User,
)
from pmdump.types import DBConn, DBType, UserIDChange
from pmdump.utils import uuid_to_str

_HOME = "home"
_INBOX = "inbox"
_ENG = "eng"
_FOLDER = "folder"
_DOCUMENT = "document"
_UNKNOWN = "UNKNOWN"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def _connection(db: Any) -> sqlite3.Connection:
    return db.db if isinstance(db, DBConn) else db


def _uuid(value: Any) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) == 16:
            return uuid.UUID(bytes=raw)
        value = raw.decode("ascii")
    if value is None:
        raise ValueError("expected a UUID, got NULL")
    return uuid.UUID(str(value))


def _now() -> str:
    return _dt.datetime.now().strftime(_TIME_FORMAT)


def _reraise(exc: sqlite3.Error, message: str) -> sqlite3.Error:
    """Return an error of the same kind as ``exc`` carrying ``message``."""
    error = type(exc)(f"{message}: {exc}")
    error.__cause__ = exc
    return error


def get_target_users(db: Any) -> TargetUserList:
    """Return every user of the target database with their home and inbox ids."""
    if isinstance(db, DBConn) and db.db_type != DBType.SQLITE:
        raise ValueError(f"database GetTargetUsers: db type {str(db.db_type)!r} not supported")
    with closing(_connection(db).cursor()) as cursor:
        cursor.execute("SELECT id, username, email, home_folder_id, inbox_folder_id FROM users")
        rows = cursor.fetchall()
    return TargetUserList(
        TargetUser(
            id=_uuid(user_id),
            username=username,
            email=email,
            home_id=_uuid(home_id),
            inbox_id=_uuid(inbox_id),
        )
        for user_id, username, email, home_id, inbox_id in rows
    )


def insert_users_data(
    db: Any,
    source_users: Iterable[User],
    target_users: Iterable[TargetUser],
) -> list[UserIDChange]:
    """Copy the trees of every source user into the matching target user.

    Users are matched by username. Source users without a counterpart in the
    target database are reported on stderr and skipped. Returns how the ids of
    the imported users map from source to target.
    """
    if not isinstance(target_users, TargetUserList):
        target_users = TargetUserList(target_users)
    results: list[UserIDChange] = []
    for source_user in source_users:
        target_user = target_users.get(source_user.username)
        if target_user is None:
            print(
                f"Error creating target user for {source_user.username}: "
                "no such user in the target database",
                file=sys.stderr,
            )
            continue
        import_user_data(db, source_user, target_user)
        results.append(
            UserIDChange(source_user_id=source_user.id, target_user_id=target_user.id)
        )
    return results


def import_user_data(db: Any, source_user: User, target_user: TargetUser) -> None:
    """Insert the source user's home and inbox trees under the target user's folders."""
    for root, parent_id in (
        (source_user.home, target_user.home_id),
        (source_user.inbox, target_user.inbox_id),
    ):
        if root is not None:
            for_each_source_node(db, root, parent_id, target_user.id)


def for_each_source_node(
    db: Any,
    node: Node,
    target_parent_id: uuid.UUID,
    target_user_id: uuid.UUID,
) -> None:
    """Insert ``node`` and its subtree below ``target_parent_id``.

    The home and inbox roots themselves are not inserted; their children go
    straight under the target user's own home or inbox. Failures are reported
    on stderr and the walk goes on.
    """
    is_root = node.title in (_HOME, _INBOX)
    if node.node_type == NodeType.DOCUMENT:
        try:
            insert_document(db, node, target_parent_id, target_user_id)
        except sqlite3.Error as exc:
            print(f"Document insert error: {exc}", file=sys.stderr)
    elif not is_root:
        try:
            insert_folder(db, node, target_parent_id, target_user_id)
        except sqlite3.Error as exc:
            print(f"Folder insert error: {exc}", file=sys.stderr)

    child_parent = target_parent_id if is_root else node.id
    for child in node.children.values():
        for_each_source_node(db, child, child_parent, target_user_id)


def insert_page(db: Any, doc_ver: DocumentVersion, page: Page) -> None:
    """Insert one page of ``doc_ver``."""
    page_id = uuid_to_str(page.id)
    try:
        _connection(db).execute(
            "INSERT INTO pages (id, document_version_id, number, page_count, lang) "
            "VALUES (?, ?, ?, ?, ?)",
            (page_id, uuid_to_str(doc_ver.id), page.number, len(doc_ver.pages), _ENG),
        )
    except sqlite3.Error as exc:
        raise _reraise(exc, f"insert page ID={page_id!r}, number {page.number} failed") from exc


def insert_document_version(db: Any, node: Node, doc_ver: DocumentVersion) -> None:
    """Insert a version of the document ``node`` together with its pages."""
    version_id = uuid_to_str(doc_ver.id)
    where = (
        f"document version {version_id!r}, number {doc_ver.number}, "
        f"file_name {doc_ver.file_name!r}"
    )
    conn = _connection(db)
    try:
        conn.execute(
            "INSERT INTO document_versions "
            "(id, document_id, number, file_name, lang, size, page_count) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                version_id,
                uuid_to_str(node.id),
                doc_ver.number,
                doc_ver.file_name,
                _ENG,
                0,
                len(doc_ver.pages),
            ),
        )
    except sqlite3.Error as exc:
        raise _reraise(exc, f"insert {where} failed") from exc

    for page in doc_ver.pages:
        try:
            insert_page(conn, doc_ver, page)
        except sqlite3.Error as exc:
            raise _reraise(exc, f"insert page for {where} failed") from exc


def _insert_node(conn: sqlite3.Connection, node: Node, ctype: str, parent: str, user: str) -> None:
    now = _now()
    try:
        conn.execute(
            "INSERT INTO nodes "
            "(id, title, lang, ctype, user_id, parent_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (uuid_to_str(node.id), node.title, _ENG, ctype, user, parent, now, now),
        )
    except sqlite3.Error as exc:
        raise _reraise(
            exc, f"insert node {node.title!r}, parentID {parent!r}, userID {user!r}"
        ) from exc


def insert_document(db: Any, node: Node, parent_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """Insert a document node with all its versions in one transaction."""
    conn = _connection(db)
    node_id = uuid_to_str(node.id)
    parent = uuid_to_str(parent_id)
    user = uuid_to_str(user_id)
    with conn:
        _insert_node(conn, node, _DOCUMENT, parent, user)
        try:
            conn.execute(
                "INSERT INTO documents (node_id, ocr, ocr_status) VALUES (?, ?, ?)",
                (node_id, False, _UNKNOWN),
            )
        except sqlite3.Error as exc:
            raise _reraise(exc, f"insert document {node.title}") from exc
        for doc_ver in node.versions:
            try:
                insert_document_version(conn, node, doc_ver)
            except sqlite3.Error as exc:
                raise _reraise(
                    exc,
                    f"insert document {node.title!r}, documentID {node_id!r}, "
                    f"parentID {parent!r}, userID {user!r} failed",
                ) from exc


def insert_folder(db: Any, node: Node, parent_id: uuid.UUID, user_id: uuid.UUID) -> None:
    """Insert a folder node in one transaction."""
    conn = _connection(db)
    with conn:
        _insert_node(conn, node, _FOLDER, uuid_to_str(parent_id), uuid_to_str(user_id))
        try:
            conn.execute("INSERT INTO folders (node_id) VALUES (?)", (uuid_to_str(node.id),))
        except sqlite3.Error as exc:
            raise _reraise(exc, f"insert folder {node.title}") from exc