"""Source file providers: where the files to analyze come from.

FilesystemProvider walks paths on disk; GitRevisionProvider lists the files
of a committed revision and reads their blobs straight from the object
database, without touching the working tree.
"""

import os
import re
from collections.abc import Iterable
from pathlib import Path

import pygit2

from varaudit.utils.constants import DEFAULT_EXTENSIONS
from varaudit.utils.logging import logger

_FULL_COMMIT_ID_RE = re.compile(r"^[0-9a-f]{40}$")


def _normalize_exclude(path: str) -> str:
    """Drop a leading './' and trailing separators: './vendor/' -> 'vendor'."""
    path = re.sub(r"^\.[/\\]+", "", path)
    return re.sub(r"[/\\]+$", "", path)


def _is_excluded(filename: str, exclude: Iterable[str]) -> bool:
    """True for an exact match or a file below an excluded directory."""
    filename = _normalize_exclude(filename)
    for path in exclude:
        if not path:
            continue
        if filename == path:
            return True
        if filename.startswith(path) and filename[len(path)] in ("/", "\\"):
            return True
    return False


def _has_extension(filename: str, extensions: Iterable[str]) -> bool:
    lowered = filename.lower()
    return any(lowered.endswith(ext.lower()) for ext in extensions)


class FilesystemProvider:
    """Files under the given paths, filtered by extension and exclude list.

    A path naming a file is kept regardless of its extension, the way
    `varaudit lint foo.inc` is expected to work.
    """

    def __init__(
        self,
        paths: Iterable[str] = (".",),
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        exclude: Iterable[str] = (),
    ):
        self.paths = list(paths) or ["."]
        self.extensions = tuple(extensions)
        self.exclude = [_normalize_exclude(p) for p in exclude]

    def get_files(self) -> list[str]:
        files: list[str] = []
        seen: set[str] = set()

        def add(name: str) -> None:
            if name not in seen and not _is_excluded(name, self.exclude):
                seen.add(name)
                files.append(name)

        for path in self.paths:
            p = Path(path)
            if p.is_file():
                add(str(p))
            elif p.is_dir():
                for root, dirs, names in os.walk(p):
                    dirs.sort()
                    dirs[:] = [
                        d for d in dirs if not _is_excluded(os.path.join(root, d), self.exclude)
                    ]
                    for name in sorted(names):
                        if _has_extension(name, self.extensions):
                            add(os.path.join(root, name))
            else:
                raise FileNotFoundError(f"No such file or directory: {path}")

        logger.debug("Filesystem provider found {count} files", count=len(files))
        return files

    def get_file_content(self, filename: str) -> str:
        with open(filename, encoding="utf-8", errors="replace") as f:
            return f.read()


class GitRevisionProvider:
    """Files of one committed revision of a git repository.

    Attributes:
        persistent_id: Full 40-character id of the resolved commit
    """

    def __init__(
        self,
        repo_path: str,
        revision: str,
        extensions: Iterable[str] = DEFAULT_EXTENSIONS,
        exclude: Iterable[str] = (),
    ):
        self._repo = pygit2.Repository(repo_path)
        self.extensions = tuple(extensions)
        self.exclude = [_normalize_exclude(p) for p in exclude]

        try:
            obj = self._repo.revparse_single(revision)
            commit = obj.peel(pygit2.Commit)
        except (KeyError, ValueError, pygit2.GitError):
            raise ValueError(f"Invalid revision: {revision}") from None

        self._tree = commit.tree
        self.persistent_id = str(commit.id)
        if not _FULL_COMMIT_ID_RE.match(revision):
            logger.debug("Resolved revision {rev} to {id}", rev=revision, id=self.persistent_id)

    def _walk(self, tree: pygit2.Tree, prefix: str = ""):
        for entry in tree:
            name = f"{prefix}{entry.name}"
            if entry.type_str == "tree":
                yield from self._walk(self._repo[entry.id], f"{name}/")
            elif entry.type_str == "blob":
                yield name

    def get_files(self) -> list[str]:
        files = [
            name
            for name in self._walk(self._tree)
            if _has_extension(name, self.extensions) and not _is_excluded(name, self.exclude)
        ]
        logger.debug(
            "Revision {id} has {count} matching files", id=self.persistent_id, count=len(files)
        )
        return files

    def get_file_content(self, filename: str) -> str:
        try:
            entry = self._tree[filename]
        except KeyError:
            raise FileNotFoundError(
                f"{filename} not found in revision {self.persistent_id}"
            ) from None
        blob = self._repo[entry.id]
        return blob.data.decode("utf-8", errors="replace")
