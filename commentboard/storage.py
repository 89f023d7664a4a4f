import hashlib
import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from commentboard.errors import StoreFault, WriteConflict

logger = logging.getLogger(__name__)

CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "412", "409"}
MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


def now_iso(now: datetime | None = None):
    return (now or datetime.now(timezone.utc)).isoformat(timespec="microseconds")


def _etag(body: bytes):
    return hashlib.sha256(body).hexdigest()


# --- Object store adapters ---
#
# read(key)  -> (body, etag); (None, None) when the object does not exist
# write(key, body, if_match=None, if_none_match=False) -> new etag
#   if_match      : only replace the object if its etag is still this one
#   if_none_match : only create the object if it does not exist yet
#   a failed precondition raises WriteConflict, anything else StoreFault


class MemoryObjectStore:
    def __init__(self, objects: dict | None = None):
        self._objects = dict(objects or {})
        self._lock = threading.Lock()

    def read(self, key: str):
        with self._lock:
            body = self._objects.get(key)
        if body is None:
            return None, None
        return body, _etag(body)

    def write(self, key: str, body: bytes, if_match=None, if_none_match=False):
        with self._lock:
            current = self._objects.get(key)
            if if_none_match and current is not None:
                raise WriteConflict(f"{key} already exists")
            if if_match is not None and (current is None or _etag(current) != if_match):
                raise WriteConflict(f"{key} changed since it was read")
            self._objects[key] = body
        return _etag(body)


class FileObjectStore:
    """Objects as files in one directory.

    The compare-and-swap is guarded by an in-process lock, so it only holds
    for writers sharing this process.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def _file(self, key: str):
        return self.data_dir / key

    def _read(self, key: str):
        f = self._file(key)
        try:
            return f.read_bytes() if f.exists() else None
        except OSError as e:
            raise StoreFault(f"Cannot read {key}: {e}") from e

    def read(self, key: str):
        with self._lock:
            body = self._read(key)
        if body is None:
            return None, None
        return body, _etag(body)

    def write(self, key: str, body: bytes, if_match=None, if_none_match=False):
        with self._lock:
            current = self._read(key)
            if if_none_match and current is not None:
                raise WriteConflict(f"{key} already exists")
            if if_match is not None and (current is None or _etag(current) != if_match):
                raise WriteConflict(f"{key} changed since it was read")
            f = self._file(key)
            tmp = f.with_name(f.name + ".tmp")
            try:
                tmp.write_bytes(body)
                os.replace(tmp, f)
            except OSError as e:
                raise StoreFault(f"Cannot write {key}: {e}") from e
        return _etag(body)


class S3ObjectStore:
    """S3 compatible bucket (AWS S3, Cloudflare R2) with conditional puts."""

    def __init__(self, bucket: str, client=None, *, endpoint_url=None, region="auto",
                 access_key_id=None, secret_access_key=None, timeout=5.0):
        self.bucket = bucket
        if client is None:
            client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                config=Config(
                    connect_timeout=timeout,
                    read_timeout=timeout,
                    retries={"total_max_attempts": 1, "mode": "standard"},
                ),
            )
        self.client = client

    def read(self, key: str):
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            body = resp["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in MISSING_CODES:
                return None, None
            raise StoreFault(str(e)) from e
        except BotoCoreError as e:
            raise StoreFault(str(e)) from e
        return body, resp.get("ETag")

    def write(self, key: str, body: bytes, if_match=None, if_none_match=False):
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": body,
            "ContentType": "application/json",
        }
        if if_match is not None:
            params["IfMatch"] = if_match
        elif if_none_match:
            params["IfNoneMatch"] = "*"
        try:
            resp = self.client.put_object(**params)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in CONFLICT_CODES:
                raise WriteConflict(f"{key} changed since it was read") from e
            raise StoreFault(str(e)) from e
        except BotoCoreError as e:
            raise StoreFault(str(e)) from e
        return resp.get("ETag")


def build_store(settings):
    backend = settings.store_backend
    if backend == "s3":
        return S3ObjectStore(
            settings.store_bucket,
            endpoint_url=settings.store_endpoint_url,
            region=settings.store_region,
            access_key_id=settings.store_access_key_id,
            secret_access_key=settings.store_secret_access_key,
            timeout=settings.store_timeout,
        )
    if backend == "file":
        return FileObjectStore(settings.store_data_dir)
    if backend == "memory":
        return MemoryObjectStore()
    raise ValueError(f"Unknown STORE_BACKEND: {backend}")


# --- Comment list on top of one object ---


class CommentStore:
    """The comment list kept as a JSON array in a single object.

    Every mutation reads the array, transforms it in memory and writes it
    back with a precondition on the version it read. A lost race repeats
    the whole cycle, up to `attempts` times.
    """

    def __init__(self, store, key: str = "comments.json", attempts: int = 5):
        self.store = store
        self.key = key
        self.attempts = max(1, attempts)

    def list(self):
        body, _ = self.store.read(self.key)
        if body is None:
            return []
        try:
            items = json.loads(body)
        except ValueError:
            logger.warning("%s unreadable, serving an empty list", self.key)
            return []
        if not isinstance(items, list):
            logger.warning("%s is not a JSON array, serving an empty list", self.key)
            return []
        return [item for item in items if item]

    def create(self, entry: dict):
        def append(items):
            taken = {item.get("timestamp") for item in items if isinstance(item, dict)}
            now = datetime.now(timezone.utc)
            while now_iso(now) in taken:
                now += timedelta(microseconds=1)
            item = {**entry, "timestamp": now_iso(now)}
            return items + [item], item

        return self._update(append)

    def delete(self, timestamp: str):
        def remove(items):
            kept = [
                item for item in items
                if not (isinstance(item, dict) and item.get("timestamp") == timestamp)
            ]
            return kept, len(items) - len(kept)

        return self._update(remove)

    def _load_for_update(self):
        body, etag = self.store.read(self.key)
        if body is None:
            return [], None
        try:
            items = json.loads(body)
        except ValueError as e:
            raise StoreFault(f"{self.key} is not valid JSON: {e}") from e
        if not isinstance(items, list):
            raise StoreFault(f"{self.key} is not a JSON array")
        return items, etag

    def _update(self, transform):
        for attempt in range(1, self.attempts + 1):
            items, etag = self._load_for_update()
            updated, result = transform(items)
            body = json.dumps(updated, ensure_ascii=False).encode("utf-8")
            try:
                self.store.write(self.key, body, if_match=etag, if_none_match=etag is None)
                return result
            except WriteConflict:
                logger.warning("Write conflict on %s (attempt %d/%d)", self.key, attempt, self.attempts)
        raise WriteConflict(f"{self.key} kept changing, gave up after {self.attempts} attempts")
