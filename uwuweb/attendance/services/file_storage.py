"""
Хранилище файлов объяснительных.

Файлы лежат в UPLOAD_DIR (вне статически раздаваемых путей) под
сгенерированными именами justification_<attendance_id>_<uuid>.<ext>
и отдаются только через endpoint с проверкой доступа.
"""

import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional

from fastapi import UploadFile

from uwuweb.core.config import MAX_JUSTIFICATION_FILE_SIZE, UPLOAD_DIR
from uwuweb.core.exceptions import NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

# Сигнатуры разрешенных типов: (префикс, mime, расширение)
_SIGNATURES = (
    (b"%PDF-", "application/pdf", "pdf"),
    (b"\xff\xd8\xff", "image/jpeg", "jpg"),
    (b"\x89PNG\r\n\x1a\n", "image/png", "png"),
)

ALLOWED_MIME_TYPES = {mime: ext for _, mime, ext in _SIGNATURES}
MEDIA_TYPES_BY_EXTENSION = {ext: mime for _, mime, ext in _SIGNATURES}

_STORED_NAME_RE = re.compile(r"^justification_\d+_[0-9a-f]{32}\.(pdf|jpg|png)$")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9]+")


def sniff_mime(data: bytes) -> Optional[str]:
    """MIME тип по первым байтам содержимого, None если тип не разрешен"""
    for prefix, mime, _ in _SIGNATURES:
        if data.startswith(prefix):
            return mime
    return None


def _safe_part(value: Optional[str]) -> str:
    return _UNSAFE_CHARS_RE.sub("_", value or "").strip("_")


def build_download_name(
    first_name: str, last_name: str, class_code: str, stored_name: str
) -> str:
    """Имя файла для скачивания: First_Last_CLASS_justification.ext"""
    extension = Path(stored_name).suffix.lstrip(".").lower()
    parts = [_safe_part(first_name), _safe_part(last_name), _safe_part(class_code)]
    stem = "_".join(part for part in parts if part)
    stem = f"{stem}_justification" if stem else "justification"
    return f"{stem}.{extension}" if extension else stem


class JustificationFileStorage:
    """Сохранение, поиск и удаление файлов объяснительных"""

    def __init__(self, base_dir: str = UPLOAD_DIR, max_size: int = MAX_JUSTIFICATION_FILE_SIZE):
        self.base_dir = Path(base_dir)
        self.max_size = max_size

    async def read_upload(self, upload: UploadFile) -> bytes:
        """
        Прочитать загруженный файл целиком, не больше max_size

        Raises:
            ValidationError: файл пустой или слишком большой
        """
        data = await upload.read(self.max_size + 1)
        if not data:
            raise ValidationError("Uploaded file is empty")
        if len(data) > self.max_size:
            raise ValidationError(
                "Uploaded file is too large",
                details={"max_size": self.max_size},
            )
        return data

    def validate(self, data: bytes) -> str:
        """Проверить содержимое и вернуть расширение по реальному типу"""
        if not data:
            raise ValidationError("Uploaded file is empty")
        if len(data) > self.max_size:
            raise ValidationError(
                "Uploaded file is too large",
                details={"max_size": self.max_size},
            )

        mime = sniff_mime(data)
        if mime is None:
            raise ValidationError(
                "Invalid file type. Allowed types: PDF, JPEG, PNG",
                details={"allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return ALLOWED_MIME_TYPES[mime]

    def save(self, attendance_id: int, data: bytes) -> str:
        """
        Сохранить файл объяснительной

        Returns:
            Сгенерированное имя файла (хранится в записи посещаемости)
        """
        extension = self.validate(data)
        stored_name = f"justification_{attendance_id}_{uuid.uuid4().hex}.{extension}"

        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            with open(self.base_dir / stored_name, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            logger.error(
                f"Failed to store justification file: {str(e)}",
                extra={"attendance_id": attendance_id, "stored_name": stored_name},
            )
            raise StorageError(
                "Failed to store justification file",
                details={"attendance_id": attendance_id},
            ) from e

        logger.info(
            f"Justification file stored: {stored_name}",
            extra={"attendance_id": attendance_id, "size": len(data)},
        )
        return stored_name

    def resolve(self, stored_name: str) -> Path:
        """
        Путь к сохраненному файлу

        Raises:
            NotFoundError: имя не похоже на сгенерированное, выходит за
                пределы каталога или файла нет на диске
        """
        if not stored_name or not _STORED_NAME_RE.match(stored_name):
            raise NotFoundError("Justification file")

        base = self.base_dir.resolve()
        path = (base / stored_name).resolve()
        if path.parent != base:
            raise NotFoundError("Justification file")

        if not path.is_file():
            raise NotFoundError("Justification file", stored_name)

        return path

    def delete(self, stored_name: Optional[str]) -> bool:
        """Удалить файл; отсутствующий файл не является ошибкой"""
        if not stored_name or not _STORED_NAME_RE.match(stored_name):
            return False

        path = self.base_dir / stored_name
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(
                f"Failed to delete justification file {stored_name}: {str(e)}",
                extra={"stored_name": stored_name},
            )
            return False

        logger.info(f"Justification file deleted: {stored_name}")
        return True

    @staticmethod
    def media_type(stored_name: str) -> str:
        extension = Path(stored_name).suffix.lstrip(".").lower()
        return MEDIA_TYPES_BY_EXTENSION.get(extension, "application/octet-stream")


# Хранилище по умолчанию (UPLOAD_DIR из конфигурации)
file_storage = JustificationFileStorage()


def get_file_storage() -> JustificationFileStorage:
    """Dependency для хранилища файлов"""
    return file_storage
