from unittest.mock import MagicMock

import pytest

from kyc_contracts.drive_storage import (
    DriveStorage,
    ROOT_FOLDER_NAME,
    ObjectNotFoundError,
    StorageError,
    normalize_path,
)


def test_normalize_path():
    assert normalize_path("/contracts//c1/a.pdf") == "contracts/c1/a.pdf"
    assert normalize_path("templates\\contract.pdf") == "templates/contract.pdf"
    for bad in ("", "/", "contracts/../secrets"):
        with pytest.raises(StorageError):
            normalize_path(bad)


def test_upload_and_download(storage):
    result = storage.upload("contracts/c1/a.pdf", b"%PDF-1.4 data", content_type="application/pdf")
    assert result["path"] == "contracts/c1/a.pdf"
    assert storage.exists("contracts/c1/a.pdf")
    assert storage.download("/contracts/c1/a.pdf") == b"%PDF-1.4 data"


def test_upsert(storage):
    storage.upload("a/b.txt", b"one")
    storage.upload("a/b.txt", b"two", upsert=True)
    assert storage.download("a/b.txt") == b"two"

    with pytest.raises(StorageError):
        storage.upload("a/b.txt", b"three", upsert=False)
    assert storage.download("a/b.txt") == b"two"


def test_read_range(storage):
    storage.upload("t.bin", b"0123456789")
    assert storage.read_range("t.bin", 2, 5) == b"2345"
    assert storage.read_range("t.bin", 7) == b"789"
    assert storage.read_range("t.bin", 20) == b""
    with pytest.raises(StorageError):
        storage.read_range("t.bin", 5, 2)


def test_missing_object(storage):
    assert not storage.exists("nope.pdf")
    with pytest.raises(ObjectNotFoundError):
        storage.download("nope.pdf")


def test_remove_reports_removed_paths(storage):
    storage.upload("x/1.pdf", b"1")
    storage.upload("x/2.pdf", b"2")

    assert storage.remove(["x/1.pdf", "x/missing.pdf"]) == ["x/1.pdf"]
    assert not storage.exists("x/1.pdf")
    assert storage.exists("x/2.pdf")


def test_demo_mode_without_credentials(monkeypatch, tmp_path):
    monkeypatch.setattr("kyc_contracts.drive_storage.load_credentials", lambda: None)
    storage = DriveStorage(demo_mode=False, local_dir=str(tmp_path))
    assert storage.demo_mode is True
    assert storage.service is None


def _drive_storage_with_service(tmp_path):
    storage = DriveStorage(demo_mode=True, local_dir=str(tmp_path))
    storage.demo_mode = False
    storage.service = MagicMock()
    storage.service.files.return_value.list.return_value.execute.return_value = {"files": []}
    return storage


def test_root_folder_is_looked_up_in_drive_root(tmp_path):
    storage = _drive_storage_with_service(tmp_path)

    assert storage.exists("contracts/c1/a.pdf") is False

    query = storage.service.files.return_value.list.call_args.kwargs["q"]
    assert "name='kyc-documents'" in query
    assert "'root' in parents" in query


def test_nested_lookup_uses_parent_folder(tmp_path):
    storage = _drive_storage_with_service(tmp_path)
    files = storage.service.files.return_value
    files.list.return_value.execute.side_effect = [
        {"files": [{"id": "root-folder", "name": ROOT_FOLDER_NAME}]},
        {"files": []},
    ]

    assert storage.exists("contracts/c1/a.pdf") is False

    queries = [call.kwargs["q"] for call in files.list.call_args_list]
    assert "'root' in parents" in queries[0]
    assert "name='contracts'" in queries[1]
    assert "'root-folder' in parents" in queries[1]
    assert "'root' in parents" not in queries[1]
