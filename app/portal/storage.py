from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlalchemy.orm import sessionmaker


class StorageError(RuntimeError):
    pass


class Storage:
    """
    Key-value blob storage. One blob per key (collection name, session slot, config).
    """

    def get(self, key: str) -> str | None:
        raise NotImplementedError

    def put(self, key: str, data: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def exists(self, key: str) -> bool:
        return self.get(key) is not None


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/").replace("/", "_")
        return self.root / f"{safe_key}.json"

    def get(self, key: str) -> str | None:
        p = self._path(key)
        if not p.exists():
            return None
        try:
            return p.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Cannot read blob '{key}': {e}") from e

    def put(self, key: str, data: str) -> None:
        p = self._path(key)
        tmp = p.with_name(p.name + ".tmp")
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(data, encoding="utf-8")
            # Rename so readers never see a half-written blob.
            os.replace(tmp, p)
        except OSError as e:
            raise StorageError(f"Cannot write blob '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot delete blob '{key}': {e}") from e

    def exists(self, key: str) -> bool:
        return self._path(key).exists()


@dataclass(frozen=True)
class SqlStorage(Storage):
    """Blobs kept in a single `blobs` table (see app.portal.models.Blob)."""

    sessionmaker: "sessionmaker"

    def get(self, key: str) -> str | None:
        from app.portal.models import Blob

        try:
            with self.sessionmaker() as s:
                row = s.get(Blob, key)
                return row.data if row else None
        except Exception as e:
            raise StorageError(f"Cannot read blob '{key}': {e}") from e

    def put(self, key: str, data: str) -> None:
        from app.portal.models import Blob

        try:
            with self.sessionmaker.begin() as s:
                row = s.get(Blob, key)
                if row is None:
                    s.add(Blob(key=key, data=data, updated_at=datetime.utcnow()))
                else:
                    row.data = data
                    row.updated_at = datetime.utcnow()
        except Exception as e:
            raise StorageError(f"Cannot write blob '{key}': {e}") from e

    def delete(self, key: str) -> None:
        from app.portal.models import Blob

        try:
            with self.sessionmaker.begin() as s:
                row = s.get(Blob, key)
                if row is not None:
                    s.delete(row)
        except Exception as e:
            raise StorageError(f"Cannot delete blob '{key}': {e}") from e


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    prefix: str = "portal/"

    def _client(self):
        try:
            import boto3  # type: ignore
        except Exception as e:  # pragma: no cover
            raise StorageError("boto3 required for S3 storage. Install boto3.") from e
        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}.json"

    def get(self, key: str) -> str | None:
        client = self._client()
        try:
            obj = client.get_object(Bucket=self.bucket, Key=self._key(key))
        except client.exceptions.NoSuchKey:
            return None
        except Exception as e:
            raise StorageError(f"Cannot read blob '{key}': {e}") from e
        return obj["Body"].read().decode("utf-8")

    def put(self, key: str, data: str) -> None:
        try:
            self._client().put_object(
                Bucket=self.bucket,
                Key=self._key(key),
                Body=data.encode("utf-8"),
                ContentType="application/json",
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot write blob '{key}': {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client().delete_object(Bucket=self.bucket, Key=self._key(key))
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cannot delete blob '{key}': {e}") from e


def storage_from_config(config: dict, sessionmaker: "sessionmaker | None" = None) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    if backend == "sql":
        if sessionmaker is None:
            raise StorageError("STORAGE_BACKEND=sql requires an initialized database.")
        return SqlStorage(sessionmaker=sessionmaker)
    # default local
    data_dir = (config.get("DATA_DIR") or "").strip()
    root = Path(data_dir) if data_dir else Path(os.getcwd()) / "storage"
    return LocalStorage(root=root)
