from __future__ import annotations

import pytest
import requests

from catalogo.config import Settings
from catalogo.errors import StorageError, UploadError
from catalogo.storage import LocalStorage, SupabaseStorage, storage_from_settings


class _Response:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, status_code: int = 200, raises: Exception = None) -> None:
        self.headers = {}
        self.status_code = status_code
        self.raises = raises
        self.requests = []

    def _answer(self, method, url, **kw):
        self.requests.append((method, url, kw))
        if self.raises:
            raise self.raises
        return _Response(self.status_code, "erro do storage")

    def post(self, url, **kw):
        return self._answer("POST", url, **kw)

    def delete(self, url, **kw):
        return self._answer("DELETE", url, **kw)


def test_local_upload_public_url_and_remove(storage):
    storage.upload("catalogo", "products/a.jpg", b"abc", "image/jpeg")
    assert storage.exists("catalogo", "products/a.jpg")
    assert storage.get_public_url("catalogo", "products/a.jpg") == "http://testserver/media/catalogo/products/a.jpg"

    storage.remove("catalogo", "products/a.jpg")
    assert not storage.exists("catalogo", "products/a.jpg")
    # removing twice is a no-op
    storage.remove("catalogo", "products/a.jpg")


def test_local_upload_never_overwrites(storage):
    storage.upload("catalogo", "products/a.jpg", b"first", "image/jpeg")
    with pytest.raises(UploadError):
        storage.upload("catalogo", "products/a.jpg", b"second", "image/jpeg")


def test_local_rejects_paths_outside_root(storage):
    with pytest.raises(StorageError):
        storage.upload("catalogo", "../../etc/passwd", b"x", "text/plain")


def test_supabase_upload_request():
    s = FakeSession(status_code=200)
    st = SupabaseStorage("https://proj.supabase.co/", "anon-key", timeout=7, session=s)
    st.upload("catalogo", "products/a.jpg", b"abc", "image/jpeg")

    method, url, kw = s.requests[0]
    assert method == "POST"
    assert url == "https://proj.supabase.co/storage/v1/object/catalogo/products/a.jpg"
    assert kw["data"] == b"abc"
    assert kw["headers"]["Content-Type"] == "image/jpeg"
    assert kw["timeout"] == 7
    assert s.headers["apikey"] == "anon-key"
    assert s.headers["Authorization"] == "Bearer anon-key"


def test_supabase_public_url():
    st = SupabaseStorage("https://proj.supabase.co", "k", session=FakeSession())
    assert st.get_public_url("catalogo", "products/a.jpg") == (
        "https://proj.supabase.co/storage/v1/object/public/catalogo/products/a.jpg"
    )


@pytest.mark.parametrize("session", [FakeSession(status_code=400), FakeSession(raises=requests.Timeout("lento"))])
def test_supabase_upload_failures_raise_upload_error(session):
    st = SupabaseStorage("https://proj.supabase.co", "k", session=session)
    with pytest.raises(UploadError):
        st.upload("catalogo", "products/a.jpg", b"abc", "image/jpeg")


def test_supabase_remove_uses_prefixes():
    s = FakeSession(status_code=200)
    SupabaseStorage("https://proj.supabase.co", "k", session=s).remove("catalogo", "products/a.jpg")
    method, url, kw = s.requests[0]
    assert (method, url) == ("DELETE", "https://proj.supabase.co/storage/v1/object/catalogo")
    assert kw["json"] == {"prefixes": ["products/a.jpg"]}


def test_supabase_remove_failure():
    st = SupabaseStorage("https://proj.supabase.co", "k", session=FakeSession(status_code=500))
    with pytest.raises(StorageError):
        st.remove("catalogo", "products/a.jpg")


def test_supabase_requires_configuration():
    with pytest.raises(StorageError):
        SupabaseStorage("", "")


def test_storage_from_settings(tmp_path):
    local = storage_from_settings(Settings(media_dir=str(tmp_path), public_base_url="http://loja"))
    assert isinstance(local, LocalStorage)
    assert local.get_public_url("catalogo", "x.png") == "http://loja/media/catalogo/x.png"

    remote = storage_from_settings(Settings(storage_backend="supabase", supabase_url="https://p.supabase.co", supabase_key="k"))
    assert isinstance(remote, SupabaseStorage)
