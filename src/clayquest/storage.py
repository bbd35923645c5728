from __future__ import annotations

import logging
import re
import threading
import time
from io import BytesIO
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from clayquest.errors import InvalidFilenameError

logger = logging.getLogger(__name__)

# Word characters, dash and dot only: no separators, so no way out of the directory.
_SAFE_FILENAME_RE = re.compile(r"[\w\-.]+", re.ASCII)

IMAGES = "images"
AUDIO = "audio"

CONTENT_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".mp3": "audio/mpeg",
}


def validate_filename(filename: str) -> str:
    if not filename or not _SAFE_FILENAME_RE.fullmatch(filename) or filename in (".", ".."):
        raise InvalidFilenameError(f"invalid filename: {filename!r}")
    return filename


def content_type_for(filename: str) -> str:
    return CONTENT_TYPES.get(Path(filename).suffix.lower(), "application/octet-stream")


def _to_png_bytes(data: bytes) -> bytes:
    with Image.open(BytesIO(data)) as img:
        if img.format == "PNG":
            return data
        buf = BytesIO()
        img.save(buf, format="PNG")
        return buf.getvalue()


class AssetStore:
    """
    Ephemeral file cache for generated artifacts, laid out as
    `<root>/temp/images` and `<root>/temp/audio`, served back under `/temp/...`.
    """

    def __init__(self, root_dir: Path | str) -> None:
        self.root_dir = Path(root_dir).resolve()
        self.temp_dir = self.root_dir / "temp"
        self.images_dir = self.temp_dir / IMAGES
        self.audio_dir = self.temp_dir / AUDIO
        self.images_dir.mkdir(parents=True, exist_ok=True)
        self.audio_dir.mkdir(parents=True, exist_ok=True)

        self._counter = 0
        self._counter_lock = threading.Lock()

    def _next_seq(self) -> int:
        with self._counter_lock:
            self._counter += 1
            return self._counter

    def save_image(self, provider: str, data: bytes) -> str:
        """Write image bytes under a new `{provider}_{ms}_{seq}.png` name and return its URL path."""
        try:
            png = _to_png_bytes(data)
        except (UnidentifiedImageError, OSError):
            logger.warning("Image from %s is not decodable, storing raw bytes", provider)
            png = data

        filename = f"{provider}_{int(time.time() * 1000)}_{self._next_seq()}.png"
        path = self.images_dir / filename
        path.write_bytes(png)
        logger.info("Saved image to %s (%.1f KB)", path, len(png) / 1024)
        return f"/temp/{IMAGES}/{filename}"

    def audio_filename(self, key: str) -> str:
        return validate_filename(f"{key}.mp3")

    def audio_path(self, key: str) -> Path:
        return self.audio_dir / self.audio_filename(key)

    def audio_url(self, key: str) -> str:
        return f"/temp/{AUDIO}/{self.audio_filename(key)}"

    def save_audio(self, key: str, data: bytes) -> str:
        path = self.audio_path(key)
        # Write-then-rename so a concurrent reader never sees a partial file.
        tmp = path.with_name(f"{path.name}.{self._next_seq()}.part")
        tmp.write_bytes(data)
        tmp.replace(path)
        logger.info("Saved audio to %s (%d bytes)", path, len(data))
        return self.audio_url(key)

    def resolve(self, kind: str, filename: str) -> Path | None:
        """Validated path of a cached file, or None if it doesn't exist."""
        validate_filename(filename)
        if kind == IMAGES:
            base = self.images_dir
        elif kind == AUDIO:
            base = self.audio_dir
        else:
            raise InvalidFilenameError(f"unknown asset kind: {kind!r}")
        path = base / filename
        return path if path.is_file() else None
