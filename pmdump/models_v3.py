"""Data model of a 3.3 application database and its plain-data form."""

from __future__ import annotations

import datetime as _dt
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Optional

from pmdump.types import DBConn, FilePath

_NIL = uuid.UUID(int=0)


class NodeType(str, Enum):
    """Kind of a node in a user's tree."""

    FOLDER = "folder"
    DOCUMENT = "document"

    def __str__(self) -> str:
        return self.value


def _node_type(model: str):
    try:
        return NodeType(model)
    except ValueError:
        return model


def _to_uuid(value: Any) -> uuid.UUID:
    if value is None:
        return _NIL
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def _to_datetime(value: Any) -> Optional[_dt.datetime]:
    if value is None or isinstance(value, _dt.datetime):
        return value
    if isinstance(value, _dt.date):
        return _dt.datetime(value.year, value.month, value.day)
    return _dt.datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _key(name: str, kind: str = "plain", omitempty: bool = False) -> dict:
    return {"yaml": name, "kind": kind, "omitempty": omitempty}


def _encode(record: Any) -> dict:
    """Turn a record dataclass into plain data using its field metadata."""
    out: dict[str, Any] = {}
    for f in fields(record):
        meta = f.metadata
        if not meta:
            continue
        value = getattr(record, f.name)
        if meta["omitempty"] and value is None:
            continue
        encoder, _ = _CODECS[meta["kind"]]
        out[meta["yaml"]] = encoder(value)
    return out


def _decode(cls: type, raw: Any) -> Any:
    """Build a record dataclass from plain data using its field metadata."""
    if not isinstance(raw, dict):
        raise ValueError(f"expected a mapping for {cls.__name__}, got {type(raw).__name__}")
    kwargs: dict[str, Any] = {}
    for f in fields(cls):
        meta = f.metadata
        if not meta or meta["yaml"] not in raw:
            continue
        _, decoder = _CODECS[meta["kind"]]
        kwargs[f.name] = decoder(raw[meta["yaml"]])
    return cls(**kwargs)


@dataclass
class TargetUser:
    """A user as read from the target database."""

    id: uuid.UUID
    username: str
    email: str
    home_id: uuid.UUID
    inbox_id: uuid.UUID


class TargetUserList(list):
    """List of target users with lookup by username."""

    def get(self, username: str) -> Optional[TargetUser]:
        """Return the first user with ``username``, or None."""
        return next((user for user in self if user.username == username), None)


@dataclass
class FlatNode:
    """One row of a recursive node query, with its slash separated path."""

    id: uuid.UUID
    title: str
    model: str
    full_path: str
    file_name: Optional[str] = None
    page_count: Optional[int] = None
    version: Optional[int] = None


@dataclass
class Page:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    text: Optional[str] = field(default=None, metadata=_key("text", omitempty=True))
    number: int = field(default=0, metadata=_key("number"))


@dataclass
class DocumentVersion:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    number: int = field(default=0, metadata=_key("number"))
    file_name: str = field(default="", metadata=_key("file_name"))
    size: int = field(default=0, metadata=_key("size"))
    lang: str = field(default="", metadata=_key("lang"))
    text: Optional[str] = field(default=None, metadata=_key("text", omitempty=True))
    pages: list[Page] = field(default_factory=list, metadata=_key("pages", "pages"))


@dataclass
class Node:
    """A folder or document with its children keyed by title."""

    id: uuid.UUID = _NIL
    title: str = ""
    children: dict[str, "Node"] = field(default_factory=dict)
    node_type: Any = ""
    versions: list[DocumentVersion] = field(default_factory=list)
    file_name: Optional[str] = None
    page_count: Optional[int] = None
    version: Optional[int] = None

    def insert(self, flat_node: FlatNode) -> None:
        """Place ``flat_node`` in the tree following its path, creating missing nodes."""
        current = self
        for part in flat_node.full_path.split("/"):
            if not part:
                continue
            if part not in current.children:
                current.children[part] = Node(
                    title=part,
                    id=flat_node.id,
                    node_type=_node_type(flat_node.model),
                    file_name=flat_node.file_name,
                    page_count=flat_node.page_count,
                    version=flat_node.version,
                )
            current = current.children[part]

    def get_user_documents(self) -> list["Node"]:
        """Return every document node in this subtree, this node first."""
        results = [self] if self.node_type == NodeType.DOCUMENT else []
        for child in self.children.values():
            results.extend(child.get_user_documents())
        return results

    def to_dict(self) -> dict:
        """Return the node as plain data, leaving out empty optional fields."""
        out: dict[str, Any] = {"id": str(self.id), "title": self.title}
        if self.children:
            out["children"] = {k: v.to_dict() for k, v in self.children.items()}
        if self.node_type:
            out["node_type"] = str(self.node_type)
        if self.versions:
            out["versions"] = [_encode(v) for v in self.versions]
        if self.file_name is not None:
            out["file_name"] = self.file_name
        if self.page_count is not None:
            out["page_count"] = self.page_count
        if self.version is not None:
            out["version"] = self.version
        return out

    @classmethod
    def from_dict(cls, raw: dict) -> "Node":
        """Build a node tree from the plain data produced by ``to_dict``."""
        if not isinstance(raw, dict):
            raise ValueError(f"expected a mapping for Node, got {type(raw).__name__}")
        node_type = raw.get("node_type") or ""
        return cls(
            id=_to_uuid(raw.get("id")),
            title=_text(raw.get("title")),
            children={
                str(k): cls.from_dict(v) for k, v in (raw.get("children") or {}).items()
            },
            node_type=_node_type(str(node_type)) if node_type else "",
            versions=[_decode(DocumentVersion, v) for v in raw.get("versions") or []],
            file_name=raw.get("file_name"),
            page_count=raw.get("page_count"),
            version=raw.get("version"),
        )


@dataclass
class User:
    id: uuid.UUID = _NIL
    home_folder_id: uuid.UUID = _NIL
    inbox_folder_id: uuid.UUID = _NIL
    username: str = ""
    email: str = ""
    home: Optional[Node] = None
    inbox: Optional[Node] = None


def _user_to_dict(user: User) -> dict:
    # folder ids are deliberately left out of the dumped form
    return {
        "id": str(user.id),
        "username": user.username,
        "email": user.email,
        "home": user.home.to_dict() if user.home is not None else None,
        "inbox": user.inbox.to_dict() if user.inbox is not None else None,
    }


def _user_from_dict(raw: Any) -> User:
    if not isinstance(raw, dict):
        raise ValueError(f"expected a mapping for User, got {type(raw).__name__}")
    home = raw.get("home")
    inbox = raw.get("inbox")
    return User(
        id=_to_uuid(raw.get("id")),
        username=_text(raw.get("username")),
        email=_text(raw.get("email")),
        home=Node.from_dict(home) if home is not None else None,
        inbox=Node.from_dict(inbox) if inbox is not None else None,
    )


@dataclass
class DocumentVersionPageRow:
    """One page joined with its document version, as read from the database."""

    page_id: uuid.UUID
    page_number: int
    page_text: Optional[str]
    file_name: str
    size: int
    lang: str
    document_id: uuid.UUID
    document_version_id: uuid.UUID
    document_version_text: Optional[str]
    document_version_number: int


@dataclass
class Group:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    name: str = field(default="", metadata=_key("name"))


@dataclass
class Permission:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    name: str = field(default="", metadata=_key("name"))
    codename: str = field(default="", metadata=_key("codename"))


@dataclass
class GroupsPermissions:
    group_id: uuid.UUID = field(default=_NIL, metadata=_key("group_id", "uuid"))
    permission_id: uuid.UUID = field(default=_NIL, metadata=_key("permission_id", "uuid"))


@dataclass
class DocumentType:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    name: str = field(default="", metadata=_key("name"))
    path_template: str = field(default="", metadata=_key("path_template"))
    user_id: uuid.UUID = field(default=_NIL, metadata=_key("user_id", "uuid"))
    created_at: Optional[_dt.datetime] = field(default=None, metadata=_key("created_at", "time"))


@dataclass
class Tag:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    name: str = field(default="", metadata=_key("name"))
    fg_color: str = field(default="", metadata=_key("fgcolor"))
    bg_color: str = field(default="", metadata=_key("bgcolor"))
    pinned: bool = field(default=False, metadata=_key("pinned"))
    description: Optional[str] = field(default=None, metadata=_key("description"))
    user_id: uuid.UUID = field(default=_NIL, metadata=_key("user_id", "uuid"))


@dataclass
class NodesTags:
    id: int = field(default=0, metadata=_key("id"))
    node_id: uuid.UUID = field(default=_NIL, metadata=_key("node_id", "uuid"))
    tag_id: uuid.UUID = field(default=_NIL, metadata=_key("tag_id", "uuid"))


@dataclass
class UsersGroups:
    user_id: uuid.UUID = field(default=_NIL, metadata=_key("user_id", "uuid"))
    group_id: uuid.UUID = field(default=_NIL, metadata=_key("group_id", "uuid"))


@dataclass
class UsersPermissions:
    user_id: uuid.UUID = field(default=_NIL, metadata=_key("user_id", "uuid"))
    permission_id: uuid.UUID = field(default=_NIL, metadata=_key("permission_id", "uuid"))


@dataclass
class CustomField:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    name: str = field(default="", metadata=_key("name"))
    type: str = field(default="", metadata=_key("type"))
    extra_data: Optional[str] = field(default=None, metadata=_key("extra_data", omitempty=True))
    created_at: Optional[_dt.datetime] = field(default=None, metadata=_key("created_at", "time"))
    user_id: uuid.UUID = field(default=_NIL, metadata=_key("user_id", "uuid"))


@dataclass
class DocumentTypesCustomFields:
    id: int = field(default=0, metadata=_key("id"))
    document_type_id: uuid.UUID = field(default=_NIL, metadata=_key("document_type_id", "uuid"))
    custom_field_id: uuid.UUID = field(default=_NIL, metadata=_key("custom_field_id", "uuid"))


@dataclass
class CustomFieldValues:
    id: uuid.UUID = field(default=_NIL, metadata=_key("id", "uuid"))
    document_id: uuid.UUID = field(default=_NIL, metadata=_key("document_id", "uuid"))
    field_id: uuid.UUID = field(default=_NIL, metadata=_key("field_id", "uuid"))
    value_text: Optional[str] = field(default=None, metadata=_key("value_text", omitempty=True))
    value_boolean: Optional[bool] = field(
        default=None, metadata=_key("value_boolean", omitempty=True)
    )
    value_date: Optional[_dt.datetime] = field(
        default=None, metadata=_key("value_date", "time", omitempty=True)
    )
    value_int: Optional[int] = field(default=None, metadata=_key("value_int", omitempty=True))
    value_float: Optional[float] = field(
        default=None, metadata=_key("value_float", omitempty=True)
    )
    value_monetary: Optional[float] = field(
        default=None, metadata=_key("value_monetary", omitempty=True)
    )
    value_yearmonth: Optional[float] = field(
        default=None, metadata=_key("value_yearmonth", omitempty=True)
    )
    created_at: Optional[_dt.datetime] = field(default=None, metadata=_key("created_at", "time"))


_CODECS: dict[str, tuple[Callable[[Any], Any], Callable[[Any], Any]]] = {
    "plain": (lambda v: v, lambda v: v),
    "uuid": (lambda v: None if v is None else str(v), _to_uuid),
    "time": (lambda v: v, _to_datetime),
    "pages": (
        lambda v: [_encode(p) for p in v],
        lambda v: [_decode(Page, p) for p in v or []],
    ),
}

_TABLES: tuple[tuple[str, type], ...] = (
    ("groups", Group),
    ("permissions", Permission),
    ("groups_permissions", GroupsPermissions),
    ("document_types", DocumentType),
    ("tags", Tag),
    ("nodes_tags", NodesTags),
    ("users_groups", UsersGroups),
    ("users_permissions", UsersPermissions),
    ("custom_fields", CustomField),
    ("document_types_custom_fields", DocumentTypesCustomFields),
    ("custom_field_values", CustomFieldValues),
)


@dataclass
class Data:
    """All users and tables dumped from a 3.x database."""

    users: list[User] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    permissions: list[Permission] = field(default_factory=list)
    groups_permissions: list[GroupsPermissions] = field(default_factory=list)
    document_types: list[DocumentType] = field(default_factory=list)
    tags: list[Tag] = field(default_factory=list)
    nodes_tags: list[NodesTags] = field(default_factory=list)
    users_groups: list[UsersGroups] = field(default_factory=list)
    users_permissions: list[UsersPermissions] = field(default_factory=list)
    custom_fields: list[CustomField] = field(default_factory=list)
    document_types_custom_fields: list[DocumentTypesCustomFields] = field(default_factory=list)
    custom_field_values: list[CustomFieldValues] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Return all tables as plain data, keyed by their table names."""
        out: dict[str, Any] = {"users": [_user_to_dict(u) for u in self.users]}
        for name, _ in _TABLES:
            out[name] = [_encode(entry) for entry in getattr(self, name)]
        return out

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "Data":
        """Build the dump data from plain data produced by ``to_dict``."""
        raw = raw or {}
        if not isinstance(raw, dict):
            raise ValueError(f"expected a mapping for Data, got {type(raw).__name__}")
        kwargs: dict[str, Any] = {
            "users": [_user_from_dict(u) for u in raw.get("users") or []]
        }
        for name, record in _TABLES:
            kwargs[name] = [_decode(record, entry) for entry in raw.get(name) or []]
        return cls(**kwargs)


NodeOperation = Callable[[DBConn, Node], Any]


def for_each_document(db: DBConn, node: Node, op: NodeOperation) -> None:
    """Call ``op(db, document)`` on every document node of the subtree."""
    if node.node_type == NodeType.DOCUMENT:
        op(db, node)
    for child in node.children.values():
        for_each_document(db, child, op)


def for_each_node(node: Node, op: Callable[[Node], Any]) -> None:
    """Call ``op`` on every node of the subtree, parents before children."""
    op(node)
    for child in node.children.values():
        for_each_node(child, op)


def update_node_uuid(node: Node) -> None:
    """Give the node a fresh random id."""
    node.id = uuid.uuid4()


def get_file_paths(docs: Iterable[Node], media_root: str) -> list[FilePath]:
    """Map every document version file under ``media_root`` to its archive name."""
    paths = []
    for doc in docs:
        for doc_ver in doc.versions:
            uid = str(doc_ver.id)
            relative = f"docvers/{uid[0:2]}/{uid[2:4]}/{uid}/{doc_ver.file_name}"
            paths.append(FilePath(source=f"{media_root}/{relative}", dest=relative))
    return paths