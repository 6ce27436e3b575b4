from os import PathLike
from pathlib import Path
from typing import Any

from mixpkg.core.errors import PathOutsideRoot
from mixpkg.core.type_aliases import StrPath


class RootedPath(PathLike[str]):
    """A safer way to handle subpaths.

    Join subpaths to a root directory and make sure the result is still inside the root.
    Recipes name the files they produce inside the source directory, so every such name
    goes through join_within_root before anything is written.

    >>> srcdir = RootedPath("/build/src")
    >>> srcdir.join_within_root("foo-1.0.tar.gz").path
    PosixPath('/build/src/foo-1.0.tar.gz')
    >>> srcdir.join_within_root("../../etc/passwd")
    Traceback (most recent call last):
        ...
    mixpkg.core.errors.PathOutsideRoot: ...
    """

    def __init__(self, path: StrPath) -> None:
        """Create a RootedPath from an absolute path.

        :param path: the root directory, which is also the initial path
        """
        self._path = Path(path).resolve()
        self._root = self._path

    @property
    def path(self) -> Path:
        """Return the current path."""
        return self._path

    @property
    def root(self) -> Path:
        """Return the root directory of this path."""
        return self._root

    def join_within_root(self, *other: StrPath) -> "RootedPath":
        """Join one or more paths to this path, make sure the result is still inside the root.

        :raises PathOutsideRoot: if the resulting path would escape the root directory
        """
        new_path = self._path.joinpath(*other).resolve()
        if not new_path.is_relative_to(self._root):
            raise PathOutsideRoot(str(self._path), "/".join(map(str, other)), str(self._root))
        return self._with_path(new_path)

    def _with_path(self, path: Path) -> "RootedPath":
        new = RootedPath.__new__(RootedPath)
        new._path = path
        new._root = self._root
        return new

    def __fspath__(self) -> str:
        return str(self._path)

    def __str__(self) -> str:
        return str(self._path)

    def __repr__(self) -> str:
        return f"RootedPath({str(self._path)!r}, root={str(self._root)!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, RootedPath):
            return NotImplemented
        return self._path == other._path and self._root == other._root

    def __hash__(self) -> int:
        return hash((self._path, self._root))
