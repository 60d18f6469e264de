from __future__ import annotations

import posixpath
from dataclasses import replace

from objput.upload.errors import ConfigurationError
from objput.upload.models import ExistenceProbe, ProbeKind, UploadRequest


def normalize_path(path: str) -> str:
    if not path or not path.strip():
        raise ConfigurationError("destination path is empty")
    return posixpath.normpath("/" + path.strip().lstrip("/"))


def is_root(path: str) -> bool:
    return normalize_path(path) == "/"


def object_key(path: str) -> str:
    return normalize_path(path).lstrip("/")


def parent_paths(path: str) -> list[str]:
    """Return every ancestor of ``path`` below the root, outermost first."""
    parts = object_key(path).split("/")[:-1]
    return ["/" + "/".join(parts[: i + 1]) for i in range(len(parts))]


def resolve_destination(path: str, probe: ExistenceProbe, source_name: str | None) -> str:
    if probe.kind is not ProbeKind.DIRECTORY:
        return path
    if not source_name:
        raise ConfigurationError(
            f"{path} is a directory and standard input has no file name to upload under"
        )
    return posixpath.join(path.rstrip("/") or "/", posixpath.basename(source_name))


def resolve_request(request: UploadRequest, probe: ExistenceProbe, source_name: str | None) -> UploadRequest:
    if request.resolved:
        return request
    path = resolve_destination(request.destination_path, probe, source_name)
    return replace(request, destination_path=path, resolved=True)
