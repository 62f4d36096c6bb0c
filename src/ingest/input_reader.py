"""Byte stream readers for ingestion.

This module opens local files, stdin, or S3 objects and exposes them as
lazy iterators of fixed-size byte chunks for the record tokenizer.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, BinaryIO, Iterator

from core.config import ChainfeedConfig
from core.constants import STDIN_SOURCE
from core.errors import ChainfeedDependencyError, ChainfeedIngestError
from core.s3_uri import S3Location, parse_s3_uri


def read_source_chunks(source_uri: str, config: ChainfeedConfig) -> Iterator[bytes]:
    """Open a source and return a lazy iterator over its byte chunks.

    The source is opened eagerly so a missing file fails before any
    record is processed; reading happens lazily.

    Args:
        source_uri: Local file path, ``-`` for stdin, or ``s3://bucket/key``.
        config: Runtime configuration for chunk size and S3 session defaults.

    Returns:
        Iterator of byte chunks in stream order.

    Raises:
        ChainfeedIngestError: If the source cannot be opened.
    """
    chunk_size = config.read_chunk_size
    if source_uri == STDIN_SOURCE:
        return _iter_stream_chunks(sys.stdin.buffer, "stdin", chunk_size, close=False)
    if source_uri.startswith("s3://"):
        location = parse_s3_uri(source_uri)
        body = _open_s3_body(location, config)
        return _iter_s3_chunks(body, source_uri, chunk_size)
    source_path = Path(source_uri).expanduser()
    stream = _open_local_file(source_path)
    return _iter_stream_chunks(stream, str(source_path), chunk_size, close=True)


def source_label(source_uri: str) -> str:
    """Return a short file-system-safe label for a source.

    Args:
        source_uri: Source URI as given to ``read_source_chunks``.

    Returns:
        Source file stem, or ``stdin``.
    """
    if source_uri == STDIN_SOURCE:
        return "stdin"
    name = source_uri.rstrip("/").rsplit("/", 1)[-1]
    stem = Path(name).stem
    return stem or "source"


def _open_local_file(source_path: Path) -> BinaryIO:
    """Open a local input file for binary reading.

    Raises:
        ChainfeedIngestError: If the path is missing or unreadable.
    """
    if not source_path.is_file():
        raise ChainfeedIngestError(
            f"Failed to read source at {source_path}: file does not exist. "
            "Provide an existing JSON array file."
        )
    try:
        return source_path.open("rb")
    except OSError as error:
        raise ChainfeedIngestError(
            f"Failed to open source at {source_path}: {error}. Check file permissions."
        ) from error


def _iter_stream_chunks(
    stream: BinaryIO,
    label: str,
    chunk_size: int,
    close: bool,
) -> Iterator[bytes]:
    """Yield chunks from an open binary stream."""
    try:
        while True:
            try:
                chunk = stream.read(chunk_size)
            except OSError as error:
                raise ChainfeedIngestError(f"Failed to read source {label}: {error}.") from error
            if not chunk:
                return
            yield chunk
    finally:
        if close:
            stream.close()


def _open_s3_body(location: S3Location, config: ChainfeedConfig) -> Any:
    """Request an S3 object and return its streaming body.

    Raises:
        ChainfeedDependencyError: If boto3 is missing.
        ChainfeedIngestError: If the object cannot be fetched.
    """
    s3_client = _create_s3_client(config)
    from botocore.exceptions import BotoCoreError, ClientError

    try:
        response = s3_client.get_object(Bucket=location.bucket, Key=location.key)
    except (BotoCoreError, ClientError) as error:
        raise ChainfeedIngestError(
            f"Failed to open s3://{location.bucket}/{location.key}: {error}. "
            "Check the object key and AWS credentials."
        ) from error
    return response["Body"]


def _iter_s3_chunks(body: Any, source_uri: str, chunk_size: int) -> Iterator[bytes]:
    """Yield chunks from a boto3 streaming body."""
    from botocore.exceptions import BotoCoreError, ClientError

    try:
        for chunk in body.iter_chunks(chunk_size=chunk_size):
            if chunk:
                yield chunk
    except (OSError, BotoCoreError, ClientError) as error:
        raise ChainfeedIngestError(f"Failed to read source {source_uri}: {error}.") from error
    finally:
        body.close()


def _create_s3_client(config: ChainfeedConfig) -> Any:
    """Create a boto3 S3 client.

    Args:
        config: Runtime config containing optional profile/region.

    Returns:
        Boto3 S3 client.

    Raises:
        ChainfeedDependencyError: If boto3 is missing.
    """
    try:
        import boto3
    except ImportError as error:
        raise ChainfeedDependencyError(
            "S3 support requires boto3, but it is not installed. "
            "Install boto3 to read s3:// sources."
        ) from error
    session_kwargs = _build_boto3_session_kwargs(config)
    session = boto3.session.Session(**session_kwargs)
    return session.client("s3")


def _build_boto3_session_kwargs(config: ChainfeedConfig) -> dict[str, str]:
    """Build boto3 Session kwargs from config."""
    kwargs: dict[str, str] = {}
    if config.s3_profile:
        kwargs["profile_name"] = config.s3_profile
    if config.s3_region:
        kwargs["region_name"] = config.s3_region
    return kwargs
