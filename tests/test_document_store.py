import pytest

from app.core.errors import StorageError
from app.infra.document_store import LocalDocumentStore


@pytest.fixture
def store(tmp_path):
    return LocalDocumentStore(str(tmp_path), "http://localhost:8000/")


@pytest.mark.asyncio
async def test_upload_then_retrieval_url(store, tmp_path):
    await store.upload("documents/user-1/rg", b"%PDF-1.4", "application/pdf")

    url = await store.get_retrieval_url("documents/user-1/rg")

    assert url == "http://localhost:8000/files/documents/user-1/rg"
    assert (tmp_path / "documents" / "user-1" / "rg").read_bytes() == b"%PDF-1.4"


@pytest.mark.asyncio
async def test_upload_overwrites_previous_file(store, tmp_path):
    await store.upload("documents/user-1/photo", b"old", "image/png")
    await store.upload("documents/user-1/photo", b"new", "image/png")

    assert (tmp_path / "documents" / "user-1" / "photo").read_bytes() == b"new"


@pytest.mark.asyncio
async def test_retrieval_url_of_missing_file_fails(store):
    with pytest.raises(StorageError):
        await store.get_retrieval_url("documents/user-1/cpf")


@pytest.mark.parametrize("path", ["../etc/passwd", "/etc/passwd", "documents/../../x", ""])
def test_resolve_rejects_paths_outside_root(store, path):
    with pytest.raises(StorageError):
        store.resolve(path)
