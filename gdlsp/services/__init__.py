from .file_io import read_text
from .paths import ProjectPaths, canonicalize

__all__ = [
    "ProjectPaths",
    "canonicalize",
    "read_text",
]
