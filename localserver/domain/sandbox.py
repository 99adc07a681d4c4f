"""Resolution of request paths inside a served directory."""

from pathlib import Path


class ForbiddenPath(Exception):
    """Raised when a requested path escapes the served directory."""


def resolve_sandbox_path(root: Path, request_path: str) -> Path:
    """Map a decoded request path onto a filesystem path under ``root``.

    An empty path or ``/`` resolves to ``root`` itself.
    """
    if "\x00" in request_path:
        raise ForbiddenPath(request_path)

    root = root.resolve()
    relative_part = request_path.lstrip("/")
    if not relative_part:
        return root

    if ".." in Path(relative_part).parts:
        raise ForbiddenPath(request_path)

    target = (root / relative_part).resolve()
    if not (target == root or root in target.parents):
        raise ForbiddenPath(request_path)

    return target
