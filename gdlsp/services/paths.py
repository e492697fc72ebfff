"""Project path <-> protocol URI conversion."""

from __future__ import annotations

import os

from PySide6.QtCore import QUrl

RES_PREFIX = "res://"
FILE_SCHEME = "file"


class ProjectPaths:
    """Translate between ``res://`` / local paths and ``file://`` URIs for one project."""

    def __init__(self, project_root: str) -> None:
        self.project_root = canonicalize(project_root or os.getcwd())

    def root_uri(self) -> str:
        return self.path_to_uri(self.project_root)

    def localize(self, path: str) -> str:
        """Return an absolute local path for a ``res://`` or filesystem path."""
        text = str(path or "").strip()
        if text.startswith(RES_PREFIX):
            relative = text[len(RES_PREFIX):].lstrip("/")
            return canonicalize(os.path.join(self.project_root, relative))
        return canonicalize(text)

    def path_to_uri(self, path: str) -> str:
        return QUrl.fromLocalFile(self.localize(path)).toString()

    def uri_to_resource(self, uri: str) -> str:
        url = QUrl(str(uri or ""))
        if url.scheme() != FILE_SCHEME:
            return str(uri or "")
        local = canonicalize(url.toLocalFile())
        root = self.project_root
        if local == root:
            return RES_PREFIX
        if local.startswith(root.rstrip(os.sep) + os.sep):
            relative = os.path.relpath(local, root).replace(os.sep, "/")
            return RES_PREFIX + relative
        return local


def canonicalize(path: str) -> str:
    text = str(path or "").strip()
    if not text:
        return ""
    return os.path.normpath(os.path.abspath(os.path.expanduser(text)))
