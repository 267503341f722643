# app/domain/errors.py
"""
Taxonomía de errores de la capa de slots.

- RemoteUnavailable: red, timeout, status no-2xx o body malformado. Siempre
  dispara el fallback local; nunca se muestra al editor como fallo.
- LocalCorrupt: un registro local que no se puede parsear. Se loggea y se
  trata como ausente.
- SlotValidationError: la operación se rechaza antes de tocar cualquier store.
- LocalStoreUnavailable: el store local no acepta escrituras. Fallo duro.

El caso "sin datos" del remoto no es un error: `load()` devuelve None.
"""
from __future__ import annotations

from typing import Optional


class SlotStoreError(Exception):
    """Base de todos los errores de persistencia de slots."""


class RemoteUnavailable(SlotStoreError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.args[0]} (status={self.status_code})"
        return self.args[0]


class LocalCorrupt(SlotStoreError):
    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Corrupt local record '{key}': {reason}")
        self.key = key
        self.reason = reason


class SlotValidationError(SlotStoreError, ValueError):
    pass


class LocalStoreUnavailable(SlotStoreError):
    pass
