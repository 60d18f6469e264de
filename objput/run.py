from __future__ import annotations

import argparse
import logging
import sys

from prometheus_client import REGISTRY, write_to_textfile
from pydantic import ValidationError

from objput.core.config import Settings
from objput.core.logging import setup_logging
from objput.upload.errors import ConfigurationError, UploadError
from objput.upload.minio_store import build_store
from objput.upload.models import UploadRequest
from objput.upload.progress import should_draw_progress, tqdm_factory
from objput.upload.retry import BackoffPolicy
from objput.upload.service import Uploader
from objput.upload.source import UploadSource

logger = logging.getLogger("objput")


def parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise ConfigurationError(f"header must look like 'Name: value', got {raw!r}")
    return name.strip(), value.strip()


def load_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"invalid settings: {problems}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="objput",
        description="Upload a file or standard input to object storage, retrying transient failures.",
    )
    parser.add_argument("path", help="destination path; an existing directory gets the source file name appended")
    parser.add_argument("-f", "--file", help="file to upload (default: standard input)")
    parser.add_argument("-c", "--copies", type=int, default=2, help="number of copies to store (default: 2)")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="extra HTTP header, may be repeated",
    )
    parser.add_argument("--md5", action="store_true", help="compute a Content-MD5 header before uploading")
    parser.add_argument("-p", "--parents", action="store_true", help="create missing parent directories")
    parser.add_argument("--content-type", help="content type (default: guessed from the file name)")
    parser.add_argument("--retries", type=int, help="maximum number of attempts (default: UPLOAD_MAX_ATTEMPTS)")
    progress = parser.add_mutually_exclusive_group()
    progress.add_argument("-q", "--quiet", action="store_true", help="never draw a progress bar")
    progress.add_argument("--progress", action="store_true", help="draw a progress bar even when stderr is not a terminal")
    return parser


def main(argv: list[str] | None = None) -> int:
    setup_logging()
    args = build_parser().parse_args(argv)
    settings = None

    try:
        settings = load_settings()
        headers = dict(parse_header(raw) for raw in args.header)
        if args.content_type:
            headers["Content-Type"] = args.content_type
        if args.file and args.file != "-":
            source = UploadSource.from_file(args.file)
        else:
            source = UploadSource.from_stdin()

        try:
            policy = BackoffPolicy(
                max_attempts=args.retries if args.retries is not None else settings.UPLOAD_MAX_ATTEMPTS,
                initial_delay=settings.UPLOAD_INITIAL_DELAY,
                max_delay=settings.UPLOAD_MAX_DELAY,
                factor=settings.UPLOAD_BACKOFF_FACTOR,
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc

        draw = should_draw_progress(quiet=args.quiet, force=args.progress)
        uploader = Uploader(
            build_store(settings),
            policy,
            progress=tqdm_factory(source.name or "stdin") if draw else None,
        )
        request = UploadRequest(
            destination_path=args.path,
            headers=headers,
            copies=args.copies,
            create_parents=args.parents,
        )
        result = uploader.upload(request, source, compute_md5=args.md5)
    except UploadError as exc:
        print(f"objput: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("objput: interrupted", file=sys.stderr)
        return 130
    finally:
        if settings is not None and settings.METRICS_TEXTFILE:
            write_to_textfile(str(settings.METRICS_TEXTFILE), REGISTRY)

    logger.info("uploaded %s in %d attempt(s)", result.path, result.attempts)
    return 0


if __name__ == "__main__":
    sys.exit(main())
