import logging
import os

import pytest

from image_kraker.exceptions import BackupError, SwapError
from image_kraker.models import Fingerprint, ReplaceOutcome
from image_kraker.optimization.replace import SafeReplacer
from image_kraker.scanning.hasher import FileHasher

ORIGINAL = b"original image bytes " * 50
KRAKED = b"kraked bytes " * 20

@pytest.fixture
def image(tmp_path):
    p = tmp_path / "photo.jpg"
    p.write_bytes(ORIGINAL)
    return p

@pytest.fixture
def replacer(fake_client):
    return SafeReplacer(fake_client, "hash")

def test_replace_succeeds(image, fake_client, replacer):
    url = fake_client.shrink(image, KRAKED)

    result = replacer.replace(image, url, len(KRAKED))

    assert result.outcome is ReplaceOutcome.SUCCEEDED
    assert image.read_bytes() == KRAKED
    assert SafeReplacer.backup_path(image).read_bytes() == ORIGINAL
    assert not SafeReplacer.temp_path(image).exists()
    assert result.fingerprint == Fingerprint(content_hash=FileHasher().content_hash(image))

def test_replace_fingerprints_by_timestamp(image, fake_client):
    url = fake_client.shrink(image, KRAKED)

    result = SafeReplacer(fake_client, "timestamp").replace(image, url, len(KRAKED))

    assert result.fingerprint == Fingerprint(modified_at=int(image.stat().st_mtime))

def test_download_failure_leaves_original(image, replacer):
    result = replacer.replace(image, "https://dl.kraken.io/test/missing.jpg", len(KRAKED))

    assert result.outcome is ReplaceOutcome.DOWNLOAD_FAILED
    assert image.read_bytes() == ORIGINAL
    assert not SafeReplacer.temp_path(image).exists()
    assert not SafeReplacer.backup_path(image).exists()

def test_size_mismatch_discards_artifact(image, fake_client, replacer):
    url = fake_client.shrink(image, KRAKED)

    result = replacer.replace(image, url, len(KRAKED) + 1)

    assert result.outcome is ReplaceOutcome.SIZE_MISMATCH
    assert result.fingerprint is None
    assert image.read_bytes() == ORIGINAL
    assert not SafeReplacer.temp_path(image).exists()
    assert not SafeReplacer.backup_path(image).exists()

def test_backup_failure_leaves_original(image, fake_client, replacer, monkeypatch):
    url = fake_client.shrink(image, KRAKED)

    def failing_rename(src, dest):
        raise PermissionError("read-only directory")

    monkeypatch.setattr(replacer, "_rename", failing_rename)
    result = replacer.replace(image, url, len(KRAKED))

    assert result.outcome is ReplaceOutcome.BACKUP_FAILED
    assert result.detail.startswith("Image backup failed")
    assert "read-only directory" in result.detail
    assert image.read_bytes() == ORIGINAL
    assert not SafeReplacer.backup_path(image).exists()

def test_swap_failure_restores_original(image, fake_client, replacer, monkeypatch):
    url = fake_client.shrink(image, KRAKED)
    tmp = SafeReplacer.temp_path(image)

    def rename(src, dest):
        if src == tmp:
            raise OSError("disk full")
        os.replace(src, dest)

    monkeypatch.setattr(replacer, "_rename", rename)
    result = replacer.replace(image, url, len(KRAKED))

    assert result.outcome is ReplaceOutcome.SWAP_FAILED_RESTORED
    assert result.detail.startswith("Image replacement failed")
    assert image.read_bytes() == ORIGINAL
    assert not SafeReplacer.backup_path(image).exists()
    assert not tmp.exists()

def test_swap_failure_without_restore_keeps_backup(image, fake_client, replacer, monkeypatch):
    url = fake_client.shrink(image, KRAKED)
    tmp = SafeReplacer.temp_path(image)
    backup = SafeReplacer.backup_path(image)

    def rename(src, dest):
        if src in (tmp, backup):
            raise OSError("device gone")
        os.replace(src, dest)

    monkeypatch.setattr(replacer, "_rename", rename)
    result = replacer.replace(image, url, len(KRAKED))

    assert result.outcome is ReplaceOutcome.SWAP_FAILED_UNRESTORED
    assert not image.exists()
    assert backup.read_bytes() == ORIGINAL
    assert str(backup) in result.detail

def test_second_replace_refreshes_backup(image, fake_client, replacer, caplog):
    url = fake_client.shrink(image, KRAKED)
    replacer.replace(image, url, len(KRAKED))
    assert not any(r.levelno == logging.WARNING for r in caplog.records)

    image.write_bytes(ORIGINAL + b"edited")
    smaller = b"tiny"
    url = fake_client.shrink(image, smaller)
    with caplog.at_level(logging.WARNING):
        result = replacer.replace(image, url, len(smaller))

    assert result.succeeded
    assert any("Overwriting previous backup" in r.getMessage() for r in caplog.records)
    assert image.read_bytes() == smaller
    assert SafeReplacer.backup_path(image).read_bytes() == ORIGINAL + b"edited"

def test_backup_error_wraps_rename_failure(image, replacer, monkeypatch):
    def failing_rename(src, dest):
        raise PermissionError("read-only directory")
    monkeypatch.setattr(replacer, "_rename", failing_rename)

    with pytest.raises(BackupError) as exc:
        replacer._backup(image, SafeReplacer.backup_path(image))
    assert isinstance(exc.value.__cause__, PermissionError)

def test_swap_error_wraps_rename_failure(image, replacer):
    missing = SafeReplacer.temp_path(image)

    with pytest.raises(SwapError):
        replacer._swap(missing, image)
    assert image.read_bytes() == ORIGINAL
