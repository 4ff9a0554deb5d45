"""Reading users, node trees and related tables from a 3.3 application database."""

from __future__ import annotations

import dataclasses
import datetime as _dt
import re
import sqlite3
import uuid
from contextlib import closing
from typing import Any, Optional
from urllib.parse import urlparse

from pmdump.models_v3 import (
    CustomField,
    CustomFieldValues,
    DocumentType,
    DocumentTypesCustomFields,
    DocumentVersion,
    DocumentVersionPageRow,
    FlatNode,
    Group,
    GroupsPermissions,
    Node,
    NodesTags,
    NodeType,
    Page,
    Permission,
    Tag,
    User,
    UsersGroups,
    UsersPermissions,
)
from pmdump.types import AppVersion, DBConn, DBType
from pmdump.utils import is_readable_file, uuid_to_str, without_home_prefix, without_inbox_prefix

_HOME = "home"
_INBOX = "inbox"

_FLAT_NODES_QUERY = """
    WITH RECURSIVE node_tree AS (
      SELECT
        n.id,
        n.title,
        n.ctype AS model,
        n.title as full_path
      FROM nodes n
      WHERE parent_id is NULL AND title = '{root}' AND user_id = ?

      UNION ALL

      SELECT
        n.id,
        n.title,
        n.ctype AS model,
        nt.full_path || '/' || n.title AS full_path
      FROM nodes n
      INNER JOIN node_tree nt ON n.parent_id = nt.id
      LEFT JOIN documents doc ON doc.node_id = n.id
      WHERE n.user_id = ?
    )
    SELECT
      id,
      title,
      model,
      full_path,
      LENGTH(full_path) AS path_len
    FROM node_tree
    ORDER BY path_len ASC;
"""

_DOCUMENT_VERSIONS_QUERY = """
    SELECT
      d.node_id AS DocumentID,
      dv.id AS DocumentVersionID,
      dv.number AS DocumentVersionNumber,
      dv.text AS DocumentText,
      dv.file_name AS FileName,
      dv.lang AS Lang,
      dv.size AS Size,
      p.id AS PageID,
      p.number AS PageNumber,
      p.text AS PageText
    FROM document_versions dv
    JOIN pages p ON p.document_version_id = dv.id
    JOIN documents d ON d.node_id = dv.document_id
    WHERE d.node_id = ?
"""

_FRACTION = re.compile(r"(\.\d+)")


def _uuid(value: Any) -> uuid.UUID:
    if value is None:
        raise ValueError("expected a UUID, got NULL")
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) == 16:
            return uuid.UUID(bytes=raw)
        value = raw.decode("ascii")
    return uuid.UUID(str(value))


def _datetime(value: Any, required: bool = True) -> Optional[_dt.datetime]:
    if value is None:
        if required:
            raise ValueError("expected a timestamp, got NULL")
        return None
    if isinstance(value, _dt.datetime):
        return value
    if isinstance(value, _dt.date):
        return _dt.datetime(value.year, value.month, value.day)
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii")
    text = str(value).strip().replace("Z", "+00:00")
    # normalise fractional seconds to six digits for fromisoformat
    text = _FRACTION.sub(lambda m: "." + (m.group(1)[1:] + "000000")[:6], text, count=1)
    return _dt.datetime.fromisoformat(text)


def _optional(value: Any, convert) -> Any:
    return None if value is None else convert(value)


def _connection(db: Any) -> sqlite3.Connection:
    return db.db if isinstance(db, DBConn) else db


def _fetch(db: Any, query: str, params: tuple = ()) -> list[tuple]:
    with closing(_connection(db).cursor()) as cursor:
        cursor.execute(query, params)
        return cursor.fetchall()


def _require_sqlite(db: DBConn, operation: str) -> None:
    if db.db_type != DBType.SQLITE:
        raise ValueError(f"database {operation}: db type {str(db.db_type)!r} not supported")


def open_database(dburl: str, app_version: AppVersion) -> DBConn:
    """Open the source database named by ``dburl``.

    Only ``sqlite`` URLs can be opened; the path part of the URL names the file.
    """
    try:
        parsed = urlparse(dburl)
    except ValueError as exc:
        raise ValueError(f"Error parsing dburl {dburl}: {exc}") from exc

    if parsed.scheme.startswith("sqlite"):
        path = parsed.path
        if not is_readable_file(path):
            raise ValueError(f"{path!r} is not a readable file")
        return DBConn(db=sqlite3.connect(path), app_version=app_version, db_type=DBType.SQLITE)

    raise ValueError(f"database open: app version {str(app_version)!r} not supported")


def _flat_nodes(db: DBConn, user_id: uuid.UUID, root: str) -> list[FlatNode]:
    user_hex = uuid_to_str(user_id)
    rows = _fetch(db, _FLAT_NODES_QUERY.format(root=root), (user_hex, user_hex))
    return [
        FlatNode(id=_uuid(node_id), title=title, model=model, full_path=full_path)
        for node_id, title, model, full_path, _ in rows
    ]


def get_home_flat_nodes(db: DBConn, user_id: uuid.UUID) -> list[FlatNode]:
    """Return the user's home folder and everything below it, shortest paths first."""
    _require_sqlite(db, "GetHomeFlatNodes")
    return _flat_nodes(db, user_id, _HOME)


def get_inbox_flat_nodes(db: DBConn, user_id: uuid.UUID) -> list[FlatNode]:
    """Return the user's inbox folder and everything below it, shortest paths first."""
    _require_sqlite(db, "GetInboxFlatNodes")
    return _flat_nodes(db, user_id, _INBOX)


def get_user_nodes(db: DBConn, user: User) -> None:
    """Attach the user's home and inbox trees, read from the database."""
    _require_sqlite(db, "GetUserNodes")
    user.inbox = Node(title=_INBOX, id=user.inbox_folder_id, node_type=NodeType.FOLDER)
    user.home = Node(title=_HOME, id=user.home_folder_id, node_type=NodeType.FOLDER)

    for flat in get_home_flat_nodes(db, user.id):
        if flat.full_path == _HOME:
            continue
        user.home.insert(dataclasses.replace(flat, full_path=without_home_prefix(flat.full_path)))

    for flat in get_inbox_flat_nodes(db, user.id):
        if flat.full_path == _INBOX:
            continue
        user.inbox.insert(
            dataclasses.replace(flat, full_path=without_inbox_prefix(flat.full_path))
        )


def get_document_versions_for_node(
    db: DBConn, node_id: uuid.UUID
) -> list[DocumentVersionPageRow]:
    """Return one row per page of every version of the document ``node_id``."""
    rows = _fetch(db, _DOCUMENT_VERSIONS_QUERY, (uuid_to_str(node_id),))
    return [
        DocumentVersionPageRow(
            document_id=_uuid(document_id),
            document_version_id=_uuid(version_id),
            document_version_number=int(version_number),
            document_version_text=version_text,
            file_name=file_name,
            lang=lang,
            size=int(size),
            page_id=_uuid(page_id),
            page_number=int(page_number),
            page_text=page_text,
        )
        for (
            document_id,
            version_id,
            version_number,
            version_text,
            file_name,
            lang,
            size,
            page_id,
            page_number,
            page_text,
        ) in rows
    ]


def insert_doc_versions_and_pages(db: DBConn, node: Node) -> None:
    """Read the document's versions with their pages and append them to ``node``."""
    _require_sqlite(db, "InsertDocVersionsAndPages")
    versions: dict[uuid.UUID, DocumentVersion] = {}
    for row in get_document_versions_for_node(db, node.id):
        page = Page(id=row.page_id, number=row.page_number, text=row.page_text)
        version = versions.get(row.document_version_id)
        if version is None:
            versions[row.document_version_id] = DocumentVersion(
                id=row.document_version_id,
                number=row.document_version_number,
                file_name=row.file_name,
                lang=row.lang,
                size=row.size,
                text=row.document_version_text,
                pages=[page],
            )
        else:
            version.pages.append(page)
    node.versions.extend(versions.values())


def get_users(db: Any) -> list[User]:
    """Return every user with the ids of their home and inbox folders."""
    rows = _fetch(db, "SELECT id, home_folder_id, inbox_folder_id, username, email FROM users")
    return [
        User(
            id=_uuid(user_id),
            home_folder_id=_uuid(home_id),
            inbox_folder_id=_uuid(inbox_id),
            username=username,
            email=email,
        )
        for user_id, home_id, inbox_id, username, email in rows
    ]


def get_groups(db: Any) -> list[Group]:
    """Return every group."""
    return [Group(id=_uuid(gid), name=name) for gid, name in _fetch(db, "SELECT id, name FROM groups")]


def get_permissions(db: Any) -> list[Permission]:
    """Return every permission."""
    rows = _fetch(db, "SELECT id, name, codename FROM permissions")
    return [Permission(id=_uuid(pid), name=name, codename=codename) for pid, name, codename in rows]


def get_groups_permissions(db: Any) -> list[GroupsPermissions]:
    """Return the group to permission links."""
    rows = _fetch(db, "SELECT group_id, permission_id FROM groups_permissions")
    return [GroupsPermissions(group_id=_uuid(g), permission_id=_uuid(p)) for g, p in rows]


def get_document_types(db: Any) -> list[DocumentType]:
    """Return every document type."""
    rows = _fetch(db, "SELECT id, name, path_template, user_id, created_at FROM document_types")
    return [
        DocumentType(
            id=_uuid(dtid),
            name=name,
            path_template=path_template,
            user_id=_uuid(user_id),
            created_at=_datetime(created_at),
        )
        for dtid, name, path_template, user_id, created_at in rows
    ]


def get_tags(db: Any) -> list[Tag]:
    """Return every tag."""
    rows = _fetch(
        db, "SELECT id, name, fg_color, bg_color, pinned, description, user_id FROM tags"
    )
    return [
        Tag(
            id=_uuid(tid),
            name=name,
            fg_color=fg_color,
            bg_color=bg_color,
            pinned=bool(pinned),
            description=description,
            user_id=_uuid(user_id),
        )
        for tid, name, fg_color, bg_color, pinned, description, user_id in rows
    ]


def get_nodes_tags(db: Any) -> list[NodesTags]:
    """Return the node to tag links."""
    rows = _fetch(db, "SELECT id, node_id, tag_id FROM nodes_tags")
    return [NodesTags(id=int(eid), node_id=_uuid(n), tag_id=_uuid(t)) for eid, n, t in rows]


def get_users_groups(db: Any) -> list[UsersGroups]:
    """Return the user to group links."""
    rows = _fetch(db, "SELECT group_id, user_id FROM users_groups")
    return [UsersGroups(group_id=_uuid(g), user_id=_uuid(u)) for g, u in rows]


def get_users_permissions(db: Any) -> list[UsersPermissions]:
    """Return the user to permission links."""
    rows = _fetch(db, "SELECT user_id, permission_id FROM users_permissions")
    return [UsersPermissions(user_id=_uuid(u), permission_id=_uuid(p)) for u, p in rows]


def get_custom_fields(db: Any) -> list[CustomField]:
    """Return every custom field definition."""
    rows = _fetch(db, "SELECT id, name, type, extra_data, created_at, user_id FROM custom_fields")
    return [
        CustomField(
            id=_uuid(fid),
            name=name,
            type=ftype,
            extra_data=extra_data,
            created_at=_datetime(created_at),
            user_id=_uuid(user_id),
        )
        for fid, name, ftype, extra_data, created_at, user_id in rows
    ]


def get_document_types_custom_fields(db: Any) -> list[DocumentTypesCustomFields]:
    """Return the document type to custom field links."""
    rows = _fetch(
        db, "SELECT id, document_type_id, custom_field_id FROM document_types_custom_fields"
    )
    return [
        DocumentTypesCustomFields(
            id=int(eid), document_type_id=_uuid(dt), custom_field_id=_uuid(cf)
        )
        for eid, dt, cf in rows
    ]


def get_custom_field_values(db: Any) -> list[CustomFieldValues]:
    """Return every custom field value attached to a document."""
    rows = _fetch(
        db,
        """
        SELECT
          id,
          document_id,
          field_id,
          value_text,
          value_boolean,
          value_date,
          value_int,
          value_float,
          value_monetary,
          value_yearmonth,
          created_at
        FROM custom_field_values
        """,
    )
    return [
        CustomFieldValues(
            id=_uuid(vid),
            document_id=_uuid(document_id),
            field_id=_uuid(field_id),
            value_text=value_text,
            value_boolean=_optional(value_boolean, bool),
            value_date=_datetime(value_date, required=False),
            value_int=_optional(value_int, int),
            value_float=_optional(value_float, float),
            value_monetary=_optional(value_monetary, float),
            value_yearmonth=_optional(value_yearmonth, float),
            created_at=_datetime(created_at),
        )
        for (
            vid,
            document_id,
            field_id,
            value_text,
            value_boolean,
            value_date,
            value_int,
            value_float,
            value_monetary,
            value_yearmonth,
            created_at,
        ) in rows
    ]