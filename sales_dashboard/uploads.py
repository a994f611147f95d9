from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path

_SUFFIX_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".pdf": "application/pdf",
}


def mime_for_path(path: str | Path) -> str:
    return _SUFFIX_MIME_TYPES.get(Path(path).suffix.lower(), "application/octet-stream")


def is_supported_mime_type(mime_type: str, allowed_mime_types: tuple[str, ...]) -> bool:
    return mime_type.strip().lower() in allowed_mime_types


@dataclass(frozen=True)
class FileBlob:
    """An uploaded file with its declared media type."""

    name: str
    mime_type: str
    content: bytes

    @classmethod
    def from_path(cls, path: str | Path) -> "FileBlob":
        p = Path(path)
        return cls(name=p.name, mime_type=mime_for_path(p), content=p.read_bytes())

    def base64_payload(self) -> str:
        return base64.b64encode(self.content).decode("ascii")

    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_payload()}"
