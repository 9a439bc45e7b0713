import re
import uuid
from pathlib import Path, PurePosixPath

import aiofiles
import aiofiles.os

from dispute_desk.core.exceptions import NotFound

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: str | None) -> str:
    """Basename only, with anything outside [A-Za-z0-9._-] collapsed to '_'."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "upload"


class StorageService:
    """
    Write-once blob store rooted at STORAGE_DIR. Keys are POSIX style
    relative paths (e.g. dispute_files/<id>/<name>); URLs point at the
    /files route.
    """

    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root.resolve() not in path.parents:
            raise NotFound("File not found")
        return path

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/files/{key}"

    async def save_file(self, content: bytes, key: str) -> str:
        """
        Save the blob and return its URL. Content goes to a temp name first
        and is renamed into place, so readers never see a partial file.
        """
        path = self._resolve(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)

        tmp_path = path.with_name(f".{path.name}.{uuid.uuid4().hex}.part")
        try:
            async with aiofiles.open(tmp_path, 'wb') as f:
                await f.write(content)
            await aiofiles.os.replace(tmp_path, path)
        except OSError:
            if await aiofiles.os.path.exists(tmp_path):
                await aiofiles.os.remove(tmp_path)
            raise

        return self.url_for(key)

    async def read_file(self, key: str) -> bytes:
        path = self._resolve(key)
        if path.name.startswith(".") or not await aiofiles.os.path.isfile(path):
            raise NotFound("File not found")
        async with aiofiles.open(path, 'rb') as f:
            return await f.read()
