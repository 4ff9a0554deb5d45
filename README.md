# pmdump

`pmdump` is a library for moving the contents of a document management
database from one installation to another. It reads users, their home and
inbox folder trees, documents with their versions and pages, groups,
permissions, tags, document types and custom fields from a source SQLite
database (application version 3.x layout), writes them to a YAML manifest,
packs the manifest and the document files into a gzipped tar archive, and
can write the same data into a target SQLite database (version 3.4 layout).

## Modules

### `pmdump.types` and `pmdump.utils`

- `AppVersion` (`"2.0"` … `"3.4"`), `DBType` (`sqlite`, `postgres`),
  `DBConn` (an open connection with its version and kind), `FilePath` (a
  file on disk and its name inside the archive) and `UserIDChange` (a user's
  id in the source mapped to its id in the target).
- `is_readable_file`, `uuid_to_str` (a UUID as 32 hex digits without
  hyphens, the form the databases store), `without_home_prefix` and
  `without_inbox_prefix`.

### `pmdump.archive`

```python
from pmdump.archive import create_tar_gz, extract_tar_gz
from pmdump.types import FilePath

create_tar_gz("dump.tar.gz", [FilePath(source="export.yaml", dest="export.yaml")])
extract_tar_gz("dump.tar.gz", "unpacked")
```

`create_tar_gz` reports sources it cannot read on stderr and skips them.
`extract_tar_gz` unpacks directories and regular files only, and raises
`ValueError` for a member whose name would land outside the destination.

### `pmdump.models_v3` and `pmdump.models_v2`

`models_v3` describes the 3.x data: `User`, `Node` (a folder or document
with children keyed by title), `DocumentVersion`, `Page`, `Group`,
`Permission`, `GroupsPermissions`, `DocumentType`, `Tag`, `NodesTags`,
`UsersGroups`, `UsersPermissions`, `CustomField`,
`DocumentTypesCustomFields` and `CustomFieldValues`, all gathered in
`Data`. `Data.to_dict` / `Data.from_dict` and `Node.to_dict` /
`Node.from_dict` convert to and from plain data. `Node.insert` builds a tree
from `FlatNode` rows, `Node.get_user_documents` collects the documents below
a node, `for_each_node`, `for_each_document` and `update_node_uuid` walk and
re-key trees, and `get_file_paths` lists the document files under a media
root together with their archive names (`docvers/<aa>/<bb>/<uuid>/<file>`).
`TargetUserList.get` finds a target user by username.

`models_v2` holds the corresponding 2.0 model. Its
`insert_doc_versions_and_pages` and `make_pages` discover a document's
versions and page texts from the `docs/` and `results/` directories of a
media root, and its `get_file_paths` maps those files to archive names.

### `pmdump.yamlio`

```python
from pmdump.types import AppVersion
from pmdump.yamlio import create_yaml, read_yaml

create_yaml("export.yaml", data, AppVersion.V3_3)
data = read_yaml("export.yaml")
```

`create_yaml` accepts versions 2.0 (a `models_v2.Data`), 3.2 and 3.3 (a
`models_v3.Data`) and raises `ValueError` for any other version and
`TypeError` for data of the wrong model. `read_yaml` returns a
`models_v3.Data`.

### `pmdump.source_v3`

```python
from pmdump import source_v3
from pmdump.types import AppVersion

db = source_v3.open_database("sqlite:///var/lib/app/db.sqlite3", AppVersion.V3_3)
users = source_v3.get_users(db)
for user in users:
    source_v3.get_user_nodes(db, user)
groups = source_v3.get_groups(db)
tags = source_v3.get_tags(db)
```

`get_user_nodes` attaches each user's home and inbox trees;
`insert_doc_versions_and_pages` adds a document's versions and pages to its
node. There is a `get_…` function for every table listed above.

### `pmdump.target_tables` and `pmdump.target_nodes`

```python
from pmdump import target_nodes, target_tables
from pmdump.types import AppVersion

target = target_tables.open_target("sqlite:///srv/app/db.sqlite3", AppVersion.V3_4)
target_tables.insert_groups(target, data.groups)
target_tables.insert_permissions(target, data.permissions)

target_users = target_nodes.get_target_users(target)
changes = target_nodes.insert_users_data(target, data.users, target_users)
```

The `target_tables.insert_…` functions insert one row at a time and stop
with the database's error at the first failure; rows inserted before it
stay. `insert_users_data` matches source users to target users by username,
creates each matched user's folders and documents under the target user's
own home and inbox, and returns the `UserIDChange` list. Failed folder or
document inserts are reported on stderr and the walk continues.

## What it does not do

- There is no command-line program; the pieces above are called from Python.
- Only SQLite databases can be opened. A `DBConn` marked as `postgres` is
  rejected with `ValueError`.
- Source users that have no user of the same name in the target database
  are reported and skipped; no target users are created.
- Version 2.0 data is only modelled and gathered from the media directory;
  there is no reader for a 2.0 database.