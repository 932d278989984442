# catalogo/storage.py
from __future__ import annotations

import logging
import os
from typing import Optional

import requests

from .config import Settings
from .errors import StorageError, UploadError

log = logging.getLogger(__name__)


class SupabaseStorage:
    """Supabase Storage over its REST API.

    Only the three calls the catalog needs: upload (no upsert), public URL
    and removal. Buckets are expected to be public.
    """

    name = "supabase"

    def __init__(self, base_url: str, api_key: str, *, timeout: float = 25,
                 session: Optional[requests.Session] = None) -> None:
        if not base_url or not api_key:
            raise StorageError("Supabase não configurado (SUPABASE_URL / SUPABASE_KEY).")
        self.base = base_url.rstrip("/")
        self.timeout = timeout
        self.s = session or requests.Session()
        self.s.headers.update({
            "Authorization": f"Bearer {api_key}",
            "apikey": api_key,
        })

    def _object_url(self, bucket: str, path: str) -> str:
        return f"{self.base}/storage/v1/object/{bucket}/{path.lstrip('/')}"

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        try:
            r = self.s.post(
                self._object_url(bucket, path),
                data=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UploadError(f"Falha HTTP no upload: {e!r}") from e
        if r.status_code not in (200, 201):
            raise UploadError(f"Storage erro {r.status_code}: {r.text}")
        log.info("Uploaded %s/%s (%d bytes)", bucket, path, len(data))

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.base}/storage/v1/object/public/{bucket}/{path.lstrip('/')}"

    def remove(self, bucket: str, path: str) -> None:
        try:
            r = self.s.delete(
                f"{self.base}/storage/v1/object/{bucket}",
                json={"prefixes": [path]},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StorageError(f"Falha HTTP ao remover {path}: {e!r}") from e
        if r.status_code not in (200, 204):
            raise StorageError(f"Storage erro {r.status_code}: {r.text}")
        log.info("Removed %s/%s", bucket, path)


class LocalStorage:
    """Bucket emulation on the local disk, served by the app under /media."""

    name = "local"

    def __init__(self, root_dir: str, public_base_url: str = "http://localhost:8000/media") -> None:
        self.root = os.path.abspath(root_dir)
        self.public_base = public_base_url.rstrip("/")

    def _file(self, bucket: str, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, bucket, path))
        if not full.startswith(self.root + os.sep):
            raise StorageError(f"Caminho inválido: {path}")
        return full

    def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        full = self._file(bucket, path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            # 'x' keeps the no-upsert semantics of the remote bucket
            with open(full, "xb") as fh:
                fh.write(data)
        except FileExistsError as e:
            raise UploadError(f"Objeto já existe: {bucket}/{path}") from e
        except OSError as e:
            raise UploadError(f"Falha ao gravar {bucket}/{path}: {e}") from e
        log.info("Stored %s/%s (%d bytes, %s)", bucket, path, len(data), content_type)

    def get_public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base}/{bucket}/{path.lstrip('/')}"

    def remove(self, bucket: str, path: str) -> None:
        full = self._file(bucket, path)
        try:
            os.remove(full)
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Falha ao remover {bucket}/{path}: {e}") from e
        log.info("Removed %s/%s", bucket, path)

    def exists(self, bucket: str, path: str) -> bool:
        return os.path.isfile(self._file(bucket, path))


def storage_from_settings(settings: Settings):
    if settings.storage_backend == "supabase":
        return SupabaseStorage(settings.supabase_url, settings.supabase_key, timeout=settings.http_timeout)
    return LocalStorage(settings.media_dir, f"{settings.public_base_url}/media")
