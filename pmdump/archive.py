"""Writing and unpacking gzip-compressed tar archives."""

from __future__ import annotations

import os
import shutil
import stat
import sys
import tarfile
from collections.abc import Iterable

from pmdump.types import FilePath


def create_tar_gz(output_filename: str, paths: Iterable[FilePath]) -> None:
    """Write every readable source into a new .tar.gz under its destination name.

    Sources that cannot be read are reported on stderr and skipped.
    """
    with tarfile.open(output_filename, "w:gz") as tar:
        for path in paths:
            try:
                _add_file(tar, path)
            except OSError as exc:
                print(
                    f"Warning:CreateTarGz:skipping {path.source!r}:{exc}",
                    file=sys.stderr,
                )


def _add_file(tar: tarfile.TarFile, path: FilePath) -> None:
    try:
        handle = open(path.source, "rb")
    except OSError:
        print(
            f"Error:addFileToTar: could not open source {path.source!r} "
            f"(with destination {path.dest!r})",
            file=sys.stderr,
        )
        raise
    with handle:
        info = os.fstat(handle.fileno())
        member = tarfile.TarInfo(path.dest)
        member.size = info.st_size
        member.mode = stat.S_IMODE(info.st_mode)
        member.mtime = int(info.st_mtime)
        tar.addfile(member, handle)


def extract_tar_gz(filename: str, destination: str) -> None:
    """Unpack the directories and regular files of a .tar.gz into ``destination``."""
    root = os.path.abspath(destination)
    with tarfile.open(filename, "r:gz") as tar:
        os.makedirs(destination, exist_ok=True)
        for member in tar:
            target = os.path.join(destination, member.name)
            _ensure_inside(root, target, member.name)
            if member.isdir():
                os.makedirs(target, exist_ok=True)
            elif member.isreg():
                source = tar.extractfile(member)
                if source is None:
                    continue
                with source:
                    _extract_file(source, target, member.mode)


def _ensure_inside(root: str, target: str, name: str) -> None:
    resolved = os.path.abspath(target)
    if os.path.commonpath([root, resolved]) != root:
        raise ValueError(f"archive member {name!r} points outside the destination")


def _extract_file(source, file_path: str, mode: int) -> None:
    parent = os.path.dirname(file_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(file_path, "wb") as out:
        shutil.copyfileobj(source, out)
    os.chmod(file_path, mode)