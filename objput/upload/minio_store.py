from __future__ import annotations

import io
from typing import BinaryIO

import urllib3
from minio import Minio
from minio.error import S3Error

from objput.core.config import Settings
from objput.upload.errors import ConfigurationError, StoreError, StoreErrorKind
from objput.upload.hashing import CONTENT_MD5, Md5Reader
from objput.upload.models import ExistenceProbe
from objput.upload.pathing import is_root, object_key, parent_paths
from objput.upload.store import PutOptions, StoreClient

DIRECTORY_CONTENT_TYPE = "application/x-directory"
DEFAULT_CONTENT_TYPE = "application/octet-stream"
DURABILITY_METADATA = "durability-level"

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchObject", "ResourceNotFound"})
PRECONDITION_CODES = frozenset({"PreconditionFailed", "BadDigest", "InvalidDigest"})
DIRECTORY_CODES = frozenset({"XMinioObjectExistsAsDirectory", "XMinioParentIsObject"})


def classify_code(code: str | None) -> StoreErrorKind:
    if code in PRECONDITION_CODES:
        return StoreErrorKind.PRECONDITION_FAILED
    if code in DIRECTORY_CODES:
        return StoreErrorKind.DIRECTORY_CONFLICT
    return StoreErrorKind.OTHER


def _pop_header(headers: dict[str, str], name: str) -> str | None:
    for key in list(headers):
        if key.lower() == name.lower():
            return headers.pop(key)
    return None


class MinioStore(StoreClient):
    """Object store backed by a MinIO / S3 bucket.

    Directories are key prefixes, optionally marked by a zero-byte
    ``key/`` object of type ``application/x-directory``.
    """

    def __init__(
        self,
        client: Minio,
        bucket: str,
        http_client: urllib3.PoolManager | None = None,
        part_size: int = 10 * 1024 * 1024,
    ):
        self._client = client
        self._bucket = bucket
        self._http = http_client
        self._part_size = part_size

    def probe(self, path: str) -> ExistenceProbe:
        if is_root(path):
            return ExistenceProbe.existing_directory()
        key = object_key(path)
        try:
            stat = self._client.stat_object(self._bucket, key)
        except S3Error as exc:
            if exc.code not in NOT_FOUND_CODES:
                raise StoreError(classify_code(exc.code), str(exc), code=exc.code) from exc
        except Exception as exc:
            raise StoreError(StoreErrorKind.OTHER, str(exc)) from exc
        else:
            if stat.is_dir or stat.content_type == DIRECTORY_CONTENT_TYPE:
                return ExistenceProbe.existing_directory()
            return ExistenceProbe.existing_object(stat.content_type)

        if self._has_children(key):
            return ExistenceProbe.existing_directory()
        return ExistenceProbe.not_found()

    def put(self, path: str, stream: BinaryIO, size: int | None, options: PutOptions) -> None:
        if is_root(path) or path.endswith("/"):
            raise StoreError(StoreErrorKind.DIRECTORY_CONFLICT, f"cannot write to directory {path or '/'}")
        key = object_key(path)

        headers = dict(options.headers)
        expected_md5 = _pop_header(headers, CONTENT_MD5)
        content_type = _pop_header(headers, "Content-Type") or DEFAULT_CONTENT_TYPE
        metadata = {**headers, DURABILITY_METADATA: str(options.copies)}
        if expected_md5 is not None:
            # minio buffers each part before sending it and aborts a multipart
            # upload when a read raises, so a mismatch is never committed
            stream = Md5Reader(stream, expected_md5, size)

        try:
            if options.create_parents:
                self._make_parents(path)
            self._client.put_object(
                self._bucket,
                key,
                stream,
                length=size if size is not None else -1,
                content_type=content_type,
                metadata=metadata,
                part_size=0 if size is not None else self._part_size,
            )
        except S3Error as exc:
            raise StoreError(classify_code(exc.code), str(exc), code=exc.code) from exc
        except StoreError:
            raise
        except Exception as exc:
            raise StoreError(StoreErrorKind.OTHER, str(exc)) from exc

    def close(self) -> None:
        if self._http is not None:
            self._http.clear()

    def _has_children(self, key: str) -> bool:
        try:
            listing = self._client.list_objects(self._bucket, prefix=key + "/")
            return next(iter(listing), None) is not None
        except S3Error as exc:
            raise StoreError(classify_code(exc.code), str(exc), code=exc.code) from exc
        except Exception as exc:
            raise StoreError(StoreErrorKind.OTHER, str(exc)) from exc

    def _make_parents(self, path: str) -> None:
        for parent in parent_paths(path):
            self._client.put_object(
                self._bucket,
                object_key(parent) + "/",
                io.BytesIO(b""),
                length=0,
                content_type=DIRECTORY_CONTENT_TYPE,
            )


def build_store(settings: Settings) -> MinioStore:
    if not settings.S3_ENDPOINT:
        raise ConfigurationError("S3_ENDPOINT is not set")
    http_client = urllib3.PoolManager(
        timeout=urllib3.Timeout(connect=settings.S3_CONNECT_TIMEOUT, read=settings.S3_READ_TIMEOUT),
        retries=urllib3.Retry(total=0, raise_on_redirect=False),
    )
    try:
        client = Minio(
            settings.S3_ENDPOINT.replace("http://", "").replace("https://", ""),
            access_key=settings.S3_ACCESS_KEY,
            secret_key=settings.S3_SECRET_KEY,
            secure=settings.S3_ENDPOINT.startswith("https"),
            http_client=http_client,
        )
    except ValueError as exc:
        raise ConfigurationError(f"invalid S3_ENDPOINT {settings.S3_ENDPOINT!r}: {exc}") from exc
    return MinioStore(client, settings.OBJPUT_BUCKET, http_client=http_client, part_size=settings.UPLOAD_PART_SIZE)
