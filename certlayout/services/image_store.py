from __future__ import annotations

import base64
import binascii
import hashlib
import os
import time
from collections import OrderedDict
from io import BytesIO
from typing import Callable
from urllib.parse import unquote_to_bytes

from PIL import Image

from ..errors import LayerRenderError
from ..logging_setup import get_logger
from ..models.layout import TemplateLayoutConfig

logger = get_logger("images")

ImageSource = str | bytes


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep:
        raise ValueError("malformed data URL")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except binascii.Error as exc:
            raise ValueError("invalid base64 payload in data URL") from exc
    return unquote_to_bytes(payload)


def load_image(source: ImageSource) -> Image.Image:
    """Decode ``source`` (file path, ``data:`` URL or raw bytes) into a loaded image."""

    if isinstance(source, (bytes, bytearray)):
        stream = BytesIO(source)
    elif source.startswith("data:"):
        stream = BytesIO(_decode_data_url(source))
    else:
        if not os.path.isfile(source):
            raise FileNotFoundError(f"Image source {source!r} does not exist")
        stream = source
    with Image.open(stream) as img:
        img.load()
        return img.copy()


class ImageStore:
    """Bounded LRU cache of decoded images with a per-entry TTL.

    One store is created per batch (or per process) and passed into the
    renderer; nothing is cached globally.
    """

    def __init__(
        self,
        max_entries: int = 32,
        ttl_seconds: float = 45.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max(1, int(max_entries))
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Image.Image]] = OrderedDict()

    @classmethod
    def from_settings(cls, settings) -> "ImageStore":
        return cls(settings.image_cache_size, settings.image_cache_ttl)

    @staticmethod
    def _key(source: ImageSource) -> str:
        if isinstance(source, (bytes, bytearray)):
            return "sha256:" + hashlib.sha256(source).hexdigest()
        if source.startswith("data:"):
            return "sha256:" + hashlib.sha256(source.encode("utf-8")).hexdigest()
        return source

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, source: ImageSource) -> bool:
        cached = self._entries.get(self._key(source))
        return cached is not None and self._clock() - cached[0] < self.ttl_seconds

    def clear(self) -> None:
        self._entries.clear()

    def get(self, source: ImageSource) -> Image.Image:
        key = self._key(source)
        now = self._clock()
        cached = self._entries.get(key)
        if cached and now - cached[0] < self.ttl_seconds:
            self._entries.move_to_end(key)
            return cached[1]

        image = load_image(source)
        self._entries[key] = (now, image)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("[images] evicted %s", evicted[:80])
        return image

    def prefetch(self, config: TemplateLayoutConfig, mode: str, values: dict | None = None) -> dict[str, Image.Image]:
        """Decode every photo source used by ``mode`` ahead of drawing.

        A field value keyed by the layer id replaces the layer's own ``src``.
        Returns ``{layer_id: image}``; an unreadable source raises
        :class:`LayerRenderError` for that layer.
        """

        loaded: dict[str, Image.Image] = {}
        for layer in config.layers_for(mode).photo_layers:
            source = (values or {}).get(layer.id) or layer.src
            if not source or isinstance(source, Image.Image):
                continue
            try:
                loaded[layer.id] = self.get(source)
            except (OSError, ValueError) as exc:
                raise LayerRenderError(layer.id, f"cannot load image: {exc}", cause=exc) from exc
        logger.info("[images] prefetched mode=%s images=%d cached=%d", mode, len(loaded), len(self))
        return loaded
