# app/domain/media.py
from __future__ import annotations

import mimetypes
from enum import Enum
from urllib.parse import urlparse

from app.domain.errors import SlotValidationError


class MediaType(str, Enum):
    """Tipo de medio aceptado por un slot."""
    IMAGE = "image"
    VIDEO = "video"
    ANY = "any"


def _guess_media(url: str) -> str | None:
    """Retorna 'image', 'video' u otro tipo principal; None si no se puede deducir."""
    if url.startswith("data:"):
        header = url[5:].split(",", 1)[0]
        mime = header.split(";", 1)[0]
    else:
        mime, _ = mimetypes.guess_type(urlparse(url).path)
    if not mime:
        return None
    return mime.split("/", 1)[0]


def validate_media_url(url: str | None, media_type: MediaType = MediaType.ANY) -> str:
    """
    Valida una URL antes de escribirla en un slot.

    Las URLs sin extensión reconocible se aceptan (los CDN suelen omitirla);
    sólo se rechaza lo que es claramente de otro tipo de medio.

    Args:
        url: URL a validar (se recortan espacios)
        media_type: Tipo de medio que acepta el slot

    Returns:
        La URL normalizada

    Raises:
        SlotValidationError: URL vacía o de un tipo de medio incorrecto
    """
    if url is None or not isinstance(url, str) or not url.strip():
        raise SlotValidationError("A non-empty URL is required")

    url = url.strip()
    if media_type == MediaType.ANY:
        return url

    guessed = _guess_media(url)
    if guessed is not None and guessed != media_type.value:
        raise SlotValidationError(
            f"Slot accepts {media_type.value} content, got {guessed}: {url}"
        )
    return url
