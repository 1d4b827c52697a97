import logging
import os
from typing import Optional

from modules.documents.approval.errors import FetchError, UploadError

logger = logging.getLogger(__name__)


class LocalFileStorage:
    """
    Almacenamiento de archivos en el directorio local de subidas.

    Las subidas nunca sobrescriben: escribir en una ruta existente falla, así
    un PDF firmado nunca reemplaza en silencio la única copia válida.
    """

    def __init__(self, root: str, public_base_url: str):
        self.root = os.path.abspath(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path.lstrip("/")))
        if os.path.commonpath([full, self.root]) != self.root:
            raise UploadError(f"Path escapes the storage root: {path}")
        return full

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def path_from_url(self, url: str) -> str:
        prefix = self.public_base_url + "/"
        if url.startswith(prefix):
            return url[len(prefix):]
        return url

    def exists(self, path: str) -> bool:
        return os.path.exists(self._full_path(path))

    def upload(self, data: bytes, path: str) -> str:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        try:
            # modo "x": falla si el archivo ya existe
            with open(full, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise UploadError(f"A file already exists at {path}")
        except OSError as e:
            raise UploadError(f"Could not write {path}: {e}")
        return self.public_url(path)

    def remove(self, path: str) -> None:
        full = self._full_path(path)
        try:
            os.remove(full)
        except FileNotFoundError:
            logger.info("File %s was already removed", path)

    def download(self, url_or_path: str) -> bytes:
        path = self.path_from_url(url_or_path)
        try:
            with open(self._full_path(path), "rb") as f:
                return f.read()
        except OSError as e:
            raise FetchError(f"Could not read {path}: {e}")


_storage: Optional[LocalFileStorage] = None


def get_storage() -> LocalFileStorage:
    global _storage
    if _storage is None:
        from config import get_settings
        settings = get_settings()
        _storage = LocalFileStorage(settings.upload_dir, settings.public_base_url)
    return _storage
