from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import BinaryIO, Mapping

from objput.upload.models import ExistenceProbe


@dataclass(frozen=True)
class PutOptions:
    headers: Mapping[str, str] = field(default_factory=dict)
    copies: int = 2
    create_parents: bool = False


class StoreClient(ABC):
    """Remote object store as seen by the uploader."""

    @abstractmethod
    def probe(self, path: str) -> ExistenceProbe:
        """
        Looks up what currently lives at ``path``.

        A missing path is ``ExistenceProbe.not_found()``, never an error.

        Raises:
            StoreError: If the lookup itself fails.
        """

    @abstractmethod
    def put(self, path: str, stream: BinaryIO, size: int | None, options: PutOptions) -> None:
        """
        Writes ``stream`` to ``path``. ``size`` is None for streams of unknown length.

        Raises:
            StoreError: Tagged with the kind of failure.
        """

    @abstractmethod
    def close(self) -> None:
        """Releases connections held by the client."""


def header_value(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None
