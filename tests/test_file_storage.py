import io
import re

import pytest
from fastapi import UploadFile

from uwuweb.core.exceptions import NotFoundError, ValidationError
from uwuweb.attendance.services.file_storage import (
    JustificationFileStorage,
    build_download_name,
    sniff_mime,
)

PDF_BYTES = b"%PDF-1.7\nbody"
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 8
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8


@pytest.mark.parametrize(
    "data, expected",
    [
        (PDF_BYTES, "application/pdf"),
        (JPEG_BYTES, "image/jpeg"),
        (PNG_BYTES, "image/png"),
        (b"GIF89a....", None),
        (b"<html>%PDF-", None),
        (b"", None),
    ],
)
def test_sniff_mime(data, expected):
    assert sniff_mime(data) == expected


def test_save_uses_generated_name(storage):
    stored = storage.save(42, JPEG_BYTES)

    assert re.fullmatch(r"justification_42_[0-9a-f]{32}\.jpg", stored)
    assert (storage.base_dir / stored).read_bytes() == JPEG_BYTES
    assert storage.save(42, JPEG_BYTES) != stored


def test_extension_follows_content_not_name(storage):
    # Имя файла клиента не участвует, только содержимое
    stored = storage.save(1, PNG_BYTES)

    assert stored.endswith(".png")
    assert storage.media_type(stored) == "image/png"


def test_rejects_invalid_content(storage):
    with pytest.raises(ValidationError):
        storage.save(1, b"#!/bin/sh\nrm -rf /\n")

    with pytest.raises(ValidationError):
        storage.save(1, b"")

    assert not storage.base_dir.exists()


def test_rejects_too_large(tmp_path):
    small = JustificationFileStorage(base_dir=str(tmp_path), max_size=16)

    with pytest.raises(ValidationError) as exc_info:
        small.save(1, PDF_BYTES + b"x" * 16)

    assert exc_info.value.details == {"max_size": 16}


def test_resolve_and_delete(storage):
    stored = storage.save(7, PDF_BYTES)

    assert storage.resolve(stored) == (storage.base_dir / stored).resolve()
    assert storage.delete(stored) is True
    assert storage.delete(stored) is False

    with pytest.raises(NotFoundError):
        storage.resolve(stored)


@pytest.mark.parametrize(
    "name",
    [
        "../justification_1_" + "a" * 32 + ".pdf",
        "/etc/passwd",
        "justification_1_notahexuuid.pdf",
        "justification_1_" + "a" * 32 + ".exe",
        "",
    ],
)
def test_resolve_refuses_foreign_names(storage, name):
    with pytest.raises(NotFoundError):
        storage.resolve(name)

    assert storage.delete(name) is False


def test_build_download_name():
    assert (
        build_download_name("Ana", "Novak", "1A", "justification_3_" + "b" * 32 + ".pdf")
        == "Ana_Novak_1A_justification.pdf"
    )
    assert (
        build_download_name("Ana Marija", "Novak/../x", "1A", "justification_3_x.PNG")
        == "Ana_Marija_Novak_x_1A_justification.png"
    )
    assert build_download_name("", None, "", "file.jpg") == "justification.jpg"


async def test_read_upload(tmp_path):
    storage = JustificationFileStorage(base_dir=str(tmp_path), max_size=32)

    data = await storage.read_upload(
        UploadFile(file=io.BytesIO(PDF_BYTES), filename="note.pdf")
    )
    assert data == PDF_BYTES

    with pytest.raises(ValidationError):
        await storage.read_upload(UploadFile(file=io.BytesIO(b""), filename="empty.pdf"))

    with pytest.raises(ValidationError):
        await storage.read_upload(
            UploadFile(file=io.BytesIO(b"%PDF-" + b"x" * 64), filename="big.pdf")
        )
