"""Path sandbox for tool file access."""

import os
from pathlib import Path
from typing import Union

from ..exceptions import PathOutsideRootError

PathLike = Union[str, os.PathLike]


def resolve_path_within_root(input_path: PathLike, root_dir: PathLike) -> Path:
    """Resolve ``input_path`` against ``root_dir`` and refuse escapes.

    Absolute paths are accepted when they land inside the root.

    Raises:
        PathOutsideRootError: If the resolved path is outside ``root_dir``
    """
    root = Path(root_dir).resolve()
    candidate = Path(input_path)
    absolute = (candidate if candidate.is_absolute() else root / candidate).resolve()
    if absolute == root or root in absolute.parents:
        return absolute
    raise PathOutsideRootError(str(input_path), str(root))


def to_prompt_path(absolute_path: PathLike, root_dir: PathLike) -> str:
    """Root-relative, forward-slash path for prompts and messages."""
    relative = os.path.relpath(Path(absolute_path), Path(root_dir).resolve())
    relative = relative.replace("\\", "/")
    return relative if relative else "."
