"""A virtual file system confined to a directory of the host."""

from __future__ import annotations

import os
import posixpath
from typing import List, Tuple, Union


class VFS:
    """Files under ``root``, addressed by absolute or cwd-relative virtual paths.

    Virtual paths never leave the root: ``..`` stops at ``/``.
    """

    def __init__(self, root: Union[str, "os.PathLike[str]"]) -> None:
        self.root = os.fspath(root)
        self.cwd = "/"

    def resolve_path(self, path: str) -> Tuple[str, str]:
        """Return the host path and the cleaned absolute virtual path of ``path``."""
        if not path.startswith("/"):
            path = posixpath.join("/", self.cwd, path)
        abspath = "/" + posixpath.normpath(path).lstrip("/")
        truepath = os.path.normpath(os.path.join(self.root, abspath.lstrip("/")))
        return truepath, abspath

    def write_file(self, path: str, data: bytes) -> None:
        truepath, _ = self.resolve_path(path)
        with open(truepath, "wb") as fh:
            fh.write(bytes(data))

    def read_file(self, path: str) -> bytes:
        truepath, _ = self.resolve_path(path)
        with open(truepath, "rb") as fh:
            return fh.read()

    def mkdir(self, path: str) -> None:
        """Create one directory; raises FileExistsError if it is already there."""
        truepath, _ = self.resolve_path(path)
        os.mkdir(truepath)

    def cd(self, path: str) -> None:
        """Change the working directory; raises FileNotFoundError if it does not exist."""
        _, abspath = self.resolve_path(path)
        if not self.exists(abspath):
            raise FileNotFoundError("cd: path dne")
        self.cwd = abspath

    def exists(self, path: str) -> bool:
        truepath, _ = self.resolve_path(path)
        return os.path.exists(truepath)

    def listdir(self, path: str = ".") -> List[str]:
        """Names of the entries of a directory, sorted."""
        truepath, _ = self.resolve_path(path)
        return sorted(os.listdir(truepath))