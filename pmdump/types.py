"""Shared value types: application versions, database kinds and small records."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AppVersion(str, Enum):
    """Version of the document management application a database belongs to."""

    V2_0 = "2.0"
    V2_1 = "2.1"
    V3_0 = "3.0"
    V3_1 = "3.1"
    V3_2 = "3.2"
    V3_3 = "3.3"
    V3_4 = "3.4"

    def __str__(self) -> str:
        return self.value


APP_VERSIONS_FOR_EXPORT: tuple[AppVersion, ...] = (
    AppVersion.V2_0,
    AppVersion.V2_1,
    AppVersion.V3_0,
    AppVersion.V3_1,
    AppVersion.V3_2,
    AppVersion.V3_3,
)


class DBType(str, Enum):
    """Kind of database engine behind a connection."""

    SQLITE = "sqlite"
    POSTGRES = "postgres"

    def __str__(self) -> str:
        return self.value


@dataclass
class DBConn:
    """An open database together with what is known about its contents."""

    db: Any
    app_version: AppVersion
    db_type: DBType


@dataclass(frozen=True)
class FilePath:
    """A file on disk and the name it takes inside an archive."""

    source: str
    dest: str


@dataclass(frozen=True)
class UserIDChange:
    """Maps a user's id in the source database to its id in the target."""

    source_user_id: uuid.UUID
    target_user_id: uuid.UUID