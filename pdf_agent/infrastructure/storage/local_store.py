import re
import secrets
from pathlib import Path

import httpx

from pdf_agent.config.settings import settings
from pdf_agent.domain.documents import StoredObject
from pdf_agent.domain.exceptions import BusinessError, NetworkError, ToolInputError


_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", Path(filename or "").name).strip("._")
    return name or "document.pdf"


class LocalDocumentStorage:
    """本地磁盘存储，文件位于 <root>/sessions/<session_id>/<随机前缀>-<filename>。

    同名上传各自得到独立的 key，不会覆盖已有文件。
    """

    def __init__(self, root: str | Path | None = None, url_prefix: str | None = None, cfg=settings):
        self._root = Path(root or cfg.uploads_dir).resolve()
        self._prefix = (url_prefix or cfg.public_url_prefix).rstrip("/")
        self._timeout = cfg.http_timeout
        self._root.mkdir(parents=True, exist_ok=True)

    def put(self, session_id: str, filename: str, data: bytes, content_type: str = "application/pdf") -> StoredObject:
        key = f"sessions/{session_id}/{secrets.token_hex(4)}-{sanitize_filename(filename)}"
        path = self._root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise BusinessError(code="STORE_WRITE_ERROR", message=str(e), http_status=500)
        return StoredObject(key=key, url=f"{self._prefix}/{key}")

    def fetch(self, url: str) -> bytes:
        if url.startswith(self._prefix + "/"):
            return self._read_local(url[len(self._prefix) + 1:])
        try:
            with httpx.Client(timeout=self._timeout, trust_env=False) as client:
                resp = client.get(url)
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e), url=url)
        if resp.status_code >= 400:
            raise ToolInputError(
                code="DOCUMENT_UNAVAILABLE",
                message=f"Failed to fetch document: HTTP {resp.status_code}",
                url=url,
            )
        return resp.content

    def _read_local(self, key: str) -> bytes:
        path = (self._root / key).resolve()
        if self._root not in path.parents:
            raise ToolInputError(code="INVALID_DOCUMENT_URL", message=f"Invalid document key: {key}")
        try:
            return path.read_bytes()
        except OSError as e:
            raise ToolInputError(code="DOCUMENT_UNAVAILABLE", message=f"Failed to read document: {e}")
