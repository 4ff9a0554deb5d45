"""Writing groups, permissions, tags and custom fields into a 3.4 application database."""

from __future__ import annotations

import datetime as _dt
import sqlite3
import uuid
from collections.abc import Callable, Iterable
from typing import Any, Optional, TypeVar
from urllib.parse import urlparse

from pmdump.models_v3 import (
    CustomField,
    CustomFieldValues,
    DocumentType,
    DocumentTypesCustomFields,
    Group,
    GroupsPermissions,
    NodesTags,
    Permission,
    Tag,
    UsersGroups,
    UsersPermissions,
)
from pmdump.types import AppVersion, DBConn, DBType
from pmdump.utils import is_readable_file, uuid_to_str

_T = TypeVar("_T")


def open_target(dburl: str, app_version: AppVersion) -> DBConn:
    """Open the target database named by ``dburl``.

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


def _connection(db: Any, operation: str) -> sqlite3.Connection:
    if isinstance(db, DBConn):
        if db.db_type != DBType.SQLITE:
            raise ValueError(f"database {operation}: db type {str(db.db_type)!r} not supported")
        return db.db
    return db


def _timestamp(value: Optional[_dt.datetime]) -> Optional[str]:
    return None if value is None else value.isoformat(sep=" ")


def _insert_all(
    db: Any,
    operation: str,
    label: str,
    query: str,
    entries: Iterable[_T],
    params: Callable[[_T], tuple],
) -> None:
    """Insert every entry on its own; stop at the first failure.

    Entries inserted before a failure stay in the database.
    """
    conn = _connection(db, operation)
    for entry in entries:
        try:
            with conn:
                conn.execute(query, params(entry))
        except sqlite3.Error as exc:
            error = type(exc)(f"insert {label} {entry} failed: {exc}")
            raise error from exc


def insert_groups(db: Any, groups: Iterable[Group]) -> None:
    """Insert every group."""
    _insert_all(
        db,
        "InsertGroups",
        "group",
        "INSERT INTO groups (id, name) VALUES(?, ?)",
        groups,
        lambda g: (uuid_to_str(g.id), g.name),
    )


def insert_permissions(db: Any, permissions: Iterable[Permission]) -> None:
    """Insert every permission."""
    _insert_all(
        db,
        "InsertPermissions",
        "permission",
        "INSERT INTO permissions (id, name, codename) VALUES(?, ?, ?)",
        permissions,
        lambda p: (uuid_to_str(p.id), p.name, p.codename),
    )


def insert_groups_permissions(db: Any, groups_permissions: Iterable[GroupsPermissions]) -> None:
    """Insert the group to permission links."""
    _insert_all(
        db,
        "InsertGroupsPermissions",
        "group permission",
        "INSERT INTO groups_permissions (group_id, permission_id) VALUES(?, ?)",
        groups_permissions,
        lambda gp: (uuid_to_str(gp.group_id), uuid_to_str(gp.permission_id)),
    )


def insert_document_types(db: Any, document_types: Iterable[DocumentType]) -> None:
    """Insert every document type."""
    _insert_all(
        db,
        "InsertDocumentTypes",
        "document_type",
        "INSERT INTO document_types (id, name, path_template, user_id, created_at) "
        "VALUES(?, ?, ?, ?, ?)",
        document_types,
        lambda dt: (
            uuid_to_str(dt.id),
            dt.name,
            dt.path_template,
            uuid_to_str(dt.user_id),
            _timestamp(dt.created_at),
        ),
    )


def insert_custom_fields(db: Any, custom_fields: Iterable[CustomField]) -> None:
    """Insert every custom field definition."""
    _insert_all(
        db,
        "InsertCustomFields",
        "custom_field",
        "INSERT INTO custom_fields (id, name, type, extra_data, created_at, user_id) "
        "VALUES(?, ?, ?, ?, ?, ?)",
        custom_fields,
        lambda cf: (
            uuid_to_str(cf.id),
            cf.name,
            cf.type,
            cf.extra_data,
            _timestamp(cf.created_at),
            uuid_to_str(cf.user_id),
        ),
    )


def insert_custom_field_values(db: Any, custom_field_values: Iterable[CustomFieldValues]) -> None:
    """Insert every custom field value."""
    _insert_all(
        db,
        "InsertCustomFieldValues",
        "custom_field_value",
        """
        INSERT INTO custom_field_values (
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
        )
        VALUES(
          ?, ?, ?,
          ?, ?, ?,
          ?, ?, ?,
          ?, ?
        )""",
        custom_field_values,
        lambda v: (
            uuid_to_str(v.id),
            uuid_to_str(v.document_id),
            uuid_to_str(v.field_id),
            v.value_text,
            v.value_boolean,
            _timestamp(v.value_date),
            v.value_int,
            v.value_float,
            v.value_monetary,
            v.value_yearmonth,
            _timestamp(v.created_at),
        ),
    )


def insert_document_types_custom_fields(
    db: Any, entries: Iterable[DocumentTypesCustomFields]
) -> None:
    """Insert the document type to custom field links.

    The linked ids are stored in their hyphenated form.
    """
    _insert_all(
        db,
        "InsertDocumentTypesCustomFields",
        "document_types_custom_fields",
        "INSERT INTO document_types_custom_fields (id, document_type_id, custom_field_id) "
        "VALUES(?, ?, ?)",
        entries,
        lambda e: (e.id, str(uuid.UUID(str(e.document_type_id))), str(uuid.UUID(str(e.custom_field_id)))),
    )


def insert_tags(db: Any, tags: Iterable[Tag]) -> None:
    """Insert every tag."""
    _insert_all(
        db,
        "InsertTags",
        "tag",
        """
        INSERT INTO tags (
          id,
          name,
          fg_color,
          bg_color,
          pinned,
          description,
          user_id
        ) VALUES(
          ?, ?, ?,
          ?, ?, ?,
          ?
        )""",
        tags,
        lambda t: (
            uuid_to_str(t.id),
            t.name,
            t.fg_color,
            t.bg_color,
            t.pinned,
            t.description,
            uuid_to_str(t.user_id),
        ),
    )


def insert_nodes_tags(db: Any, nodes_tags: Iterable[NodesTags]) -> None:
    """Insert the node to tag links."""
    _insert_all(
        db,
        "InsertNodesTags",
        "node_tag",
        "INSERT INTO nodes_tags (id, node_id, tag_id) VALUES(?, ?, ?)",
        nodes_tags,
        lambda nt: (nt.id, uuid_to_str(nt.node_id), uuid_to_str(nt.tag_id)),
    )


def insert_users_groups(db: Any, users_groups: Iterable[UsersGroups]) -> None:
    """Insert the user to group links."""
    _insert_all(
        db,
        "InsertUsersGroups",
        "user group",
        "INSERT INTO users_groups (user_id, group_id) VALUES(?, ?)",
        users_groups,
        lambda ug: (uuid_to_str(ug.user_id), uuid_to_str(ug.group_id)),
    )


def insert_users_permissions(db: Any, users_permissions: Iterable[UsersPermissions]) -> None:
    """Insert the user to permission links."""
    _insert_all(
        db,
        "InsertUsersPermissions",
        "user permission",
        "INSERT INTO users_permissions (user_id, permission_id) VALUES(?, ?)",
        users_permissions,
        lambda up: (uuid_to_str(up.user_id), uuid_to_str(up.permission_id)),
    )