from __future__ import annotations

import re
from pathlib import Path

import make_admin
from catalogo.config import _sanitize_base_url, load_settings
from catalogo.models import User, UserRole


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("STORAGE_BACKEND", "Supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://proj.supabase.co/")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://loja.com.br/")
    monkeypatch.delenv("API_BASE_URL", raising=False)
    monkeypatch.setenv("HTTP_TIMEOUT", "nada")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.com, https://b.com")

    s = load_settings()
    assert s.storage_backend == "supabase"
    assert s.supabase_url == "https://proj.supabase.co"
    assert s.api_base_url == "https://loja.com.br"
    assert s.http_timeout == 25.0
    assert s.cors_origins == ["https://a.com", "https://b.com"]
    assert s.bucket == "catalogo"


def test_sanitize_base_url():
    assert _sanitize_base_url("loja.com") == "http://localhost:8000"
    assert _sanitize_base_url(" https://loja.com/ ") == "https://loja.com"


def test_promote_sets_admin_role(db):
    db.add(User(email="dono@loja.com"))
    db.commit()

    assert make_admin.promote(db, "  DONO@loja.com ") is True
    assert db.query(User).one().role is UserRole.ADMIN
    assert make_admin.promote(db, "ninguem@loja.com") is False


def test_make_admin_requires_email(capsys):
    assert make_admin.main([]) == 1
    assert "Uso:" in capsys.readouterr().out


def test_pyproject_declares_direct_imports():
    text = (Path(__file__).resolve().parents[1] / "pyproject.toml").read_text(encoding="utf-8")
    deps = text.split("dependencies = [", 1)[1].split("]", 1)[0]
    declared = set(re.findall(r'"([A-Za-z0-9_.-]+)', deps))
    assert {"fastapi", "sqlalchemy", "pydantic", "pydantic-core", "requests"} <= declared
