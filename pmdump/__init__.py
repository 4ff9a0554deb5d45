"""Move document management data between SQLite databases via a tar.gz archive and YAML manifest."""

__version__ = "0.2"

__all__ = [
    "archive",
    "models_v2",
    "models_v3",
    "source_v3",
    "target_nodes",
    "target_tables",
    "types",
    "utils",
    "yamlio",
]