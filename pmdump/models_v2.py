"""Data model of a 2.0 application database and how it is gathered from disk."""

from __future__ import annotations

import os
import sys
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pmdump.types import FilePath


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
class Page:
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    legacy_id: int = 0
    text: str = ""
    number: int = 0


@dataclass
class DocumentVersion:
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    legacy_id: int = 0
    number: int = 0
    file_name: str = ""
    pages: list[Page] = field(default_factory=list)


@dataclass
class FlatNode:
    """One row of a recursive node query, with its slash separated path."""

    id: int
    title: str
    model: str
    full_path: str
    file_name: Optional[str] = None
    page_count: Optional[int] = None
    version: Optional[int] = None


@dataclass
class Node:
    """A folder or document with its children keyed by title."""

    title: str = ""
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    legacy_id: int = 0
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
                    legacy_id=flat_node.id,
                    id=uuid.uuid4(),
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
        out: dict[str, Any] = {
            "id": str(self.id),
            "legacy_id": self.legacy_id,
            "title": self.title,
        }
        if self.children:
            out["children"] = {k: v.to_dict() for k, v in self.children.items()}
        if self.node_type:
            out["node_type"] = str(self.node_type)
        if self.versions:
            out["versions"] = [_version_to_dict(v) for v in self.versions]
        if self.file_name is not None:
            out["file_name"] = self.file_name
        if self.page_count is not None:
            out["page_count"] = self.page_count
        if self.version is not None:
            out["version"] = self.version
        return out


def _page_to_dict(page: Page) -> dict:
    return {
        "id": str(page.id),
        "legacy_id": page.legacy_id,
        "text": page.text,
        "number": page.number,
    }


def _version_to_dict(version: DocumentVersion) -> dict:
    return {
        "id": str(version.id),
        "legacy_id": version.legacy_id,
        "number": version.number,
        "file_name": version.file_name,
        "pages": [_page_to_dict(p) for p in version.pages],
    }


@dataclass
class User:
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    legacy_id: int = 0
    username: str = ""
    email: str = ""
    home: Optional[Node] = None
    inbox: Optional[Node] = None


def _user_to_dict(user: User) -> dict:
    return {
        "id": str(user.id),
        "legacy_id": user.legacy_id,
        "username": user.username,
        "email": user.email,
        "home": user.home.to_dict() if user.home is not None else None,
        "inbox": user.inbox.to_dict() if user.inbox is not None else None,
    }


@dataclass
class Data:
    """All users with their trees, as dumped from a 2.0 database."""

    users: list[User] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"users": [_user_to_dict(u) for u in self.users]}


@dataclass
class DocumentPageRow:
    """A page of the latest document version as stored in the database."""

    page_legacy_id: int
    page_id: uuid.UUID
    page_number: int
    text: str
    document_id: uuid.UUID
    document_legacy_id: int
    document_version: int


NodeOperation = Callable[[Node, int, list, str], None]


def for_each_document(
    node: Node,
    user_id: int,
    doc_pages: list[DocumentPageRow],
    media_root: str,
    op: NodeOperation,
) -> None:
    """Call ``op`` on every document node of the subtree."""
    if node.node_type == NodeType.DOCUMENT:
        op(node, user_id, doc_pages, media_root)
    for child in node.children.values():
        for_each_document(child, user_id, doc_pages, media_root, op)


def _require_file_name(node: Node) -> str:
    if node.file_name is None:
        raise ValueError(f"document {node.title!r} has no file name")
    return node.file_name


def insert_doc_versions_and_pages(
    node: Node,
    user_id: int,
    doc_pages: list[DocumentPageRow],
    media_root: str,
) -> None:
    """Discover the document's versions on disk and attach them with their pages."""
    file_name = _require_file_name(node)
    versions: list[DocumentVersion] = []
    doc_dir = f"{media_root}/docs/user_{user_id}/document_{node.legacy_id}/"

    if os.path.exists(f"{doc_dir}{file_name}"):
        version = DocumentVersion(number=0, file_name=file_name)
        version.pages = make_pages(node, user_id, version, media_root, doc_pages)
        versions.append(version)

    try:
        entries = sorted(os.scandir(doc_dir), key=lambda e: e.name)
    except OSError as exc:
        print(f"Error reading directory: {exc}", file=sys.stderr)
        entries = []

    for entry in entries:
        if not entry.is_dir(follow_symlinks=False):
            continue
        try:
            number = int(entry.name[1:])
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            continue
        version = DocumentVersion(number=number, file_name=file_name)
        version.pages = make_pages(node, user_id, version, media_root, doc_pages)
        versions.append(version)

    node.versions = versions


def for_each_node(node: Node, op: Callable[[Node], Any]) -> None:
    """Call ``op`` on every node of the subtree, parents before children."""
    op(node)
    for child in node.children.values():
        for_each_node(child, op)


def update_node_uuid(node: Node) -> None:
    """Give the node a fresh random id."""
    node.id = uuid.uuid4()


def make_pages(
    node: Node,
    user_id: int,
    doc_ver: DocumentVersion,
    media_root: str,
    doc_pages: Iterable[DocumentPageRow],
) -> list[Page]:
    """Return the pages of one version.

    Pages in the database rows win; otherwise page texts are read from
    the results directory on disk.
    """
    pages = [
        Page(number=row.page_number, text=row.text)
        for row in doc_pages
        if row.document_id == node.id and row.document_version == doc_ver.number
    ]
    if pages:
        return pages

    base = f"{media_root}/results/user_{user_id}/document_{node.legacy_id}"
    if doc_ver.number == 0:
        pages_path = f"{base}/pages/"
    else:
        pages_path = f"{base}/v{doc_ver.number}/pages/"

    try:
        page_files = sorted(os.scandir(pages_path), key=lambda e: e.name)
    except OSError as exc:
        print(f"MakePages: Error reading directory: {exc}", file=sys.stderr)
        return pages

    for page_file in page_files:
        if page_file.is_dir(follow_symlinks=False):
            continue
        # names look like "page_<n>.txt"
        try:
            number = int(page_file.name[:-4][5:])
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            number = 0
        try:
            with open(pages_path + page_file.name, "rb") as fh:
                text = fh.read().decode("utf-8", errors="replace")
        except OSError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            text = ""
        pages.append(Page(number=number, text=text))

    return pages


def get_file_paths(docs: Iterable[Node], user_id: int, media_root: str) -> list[FilePath]:
    """Map every document version file to its place in the archive."""
    paths = []
    for doc in docs:
        file_name = _require_file_name(doc)
        for doc_ver in doc.versions:
            base = f"{media_root}/docs/user_{user_id}/document_{doc.legacy_id}"
            if doc_ver.number == 0:
                source = f"{base}/{file_name}"
            else:
                source = f"{base}/v{doc_ver.number}/{file_name}"
            uid = str(doc_ver.id)
            dest = f"docvers/{uid[0:2]}/{uid[2:4]}/{uid}/{file_name}"
            paths.append(FilePath(source=source, dest=dest))
    return paths