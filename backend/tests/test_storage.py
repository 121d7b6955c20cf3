"""Tests for document storage helpers (no network: the Supabase client is faked)."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from app.core.storage import (
    FOLDER_DEEDS,
    FOLDER_LEASES,
    StorageUploadError,
    bucket_definitions,
    build_document_path,
    ensure_bucket,
    get_storage_client,
    list_bucket_names,
    upload_document,
    upload_object,
)


class _FakeBucket:
    def __init__(self, owner, name):
        self.owner = owner
        self.name = name

    def upload(self, path, content, options):
        if self.owner.fail_upload:
            raise ConnectionError("storage unreachable")
        self.owner.uploads.append((self.name, path, content, options))
        return SimpleNamespace(path=path, error=None)


class _FakeStorage:
    def __init__(self, buckets=()):
        self.buckets = list(buckets)
        self.created = []
        self.uploads = []
        self.fail_upload = False

    def from_(self, name):
        return _FakeBucket(self, name)

    def list_buckets(self):
        return [SimpleNamespace(name=name) for name in self.buckets]

    def create_bucket(self, name, options=None):
        self.created.append((name, options))
        self.buckets.append(name)


def _client(**kwargs):
    return SimpleNamespace(storage=_FakeStorage(**kwargs))


def test_document_path_is_folder_timestamp_name():
    assert build_document_path(FOLDER_LEASES, "my lease.pdf", now_ms=1700000000000) == "leases/1700000000000-my_lease.pdf"


def test_document_path_drops_directories():
    assert build_document_path(FOLDER_DEEDS, "../../etc/deed.pdf", now_ms=1) == "deeds/1-deed.pdf"
    assert build_document_path(FOLDER_DEEDS, None, now_ms=1) == "deeds/1-document"


def test_upload_object_returns_path_and_passes_content_type():
    client = _client()
    path = upload_object(client, "documents", "deeds/1-deed.pdf", b"pdf", "application/pdf")

    assert path == "deeds/1-deed.pdf"
    assert client.storage.uploads == [("documents", "deeds/1-deed.pdf", b"pdf", {"content-type": "application/pdf"})]


def test_upload_object_wraps_client_errors():
    client = _client()
    client.storage.fail_upload = True

    with pytest.raises(StorageUploadError):
        upload_object(client, "documents", "deeds/1-deed.pdf", b"pdf", "application/pdf")


def test_upload_document_uses_documents_bucket():
    client = _client()
    stored = upload_document(
        folder=FOLDER_LEASES,
        filename="lease.pdf",
        content=b"pdf",
        content_type="application/pdf",
        client=client,
    )

    assert stored.bucket == "documents"
    assert stored.path.startswith("leases/")
    assert stored.path.endswith("-lease.pdf")
    assert stored.original_name == "lease.pdf"


def test_storage_client_requires_credentials(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "")

    with pytest.raises(RuntimeError):
        get_storage_client()


def test_bucket_definitions():
    definitions = bucket_definitions()

    assert set(definitions) == {"documents", "signatures"}
    assert definitions["documents"]["public"] is False
    assert definitions["signatures"]["file_size_limit"] == 2 * 1024 * 1024


def test_ensure_bucket_creates_only_missing():
    client = _client(buckets=["documents"])

    assert ensure_bucket(client, "documents", {}) is False
    assert ensure_bucket(client, "signatures", {"public": False}) is True
    assert client.storage.created == [("signatures", {"public": False})]
    assert sorted(list_bucket_names(client)) == ["documents", "signatures"]


def test_upload_document_reports_client_construction_failure(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "not-a-url")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role")

    def broken_client(url, key):
        raise ValueError("Invalid URL")

    monkeypatch.setattr("app.core.storage.create_client", broken_client)

    with pytest.raises(StorageUploadError):
        upload_document(folder=FOLDER_DEEDS, filename="deed.pdf", content=b"pdf", content_type="application/pdf")
