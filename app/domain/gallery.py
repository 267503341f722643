# app/domain/gallery.py
"""
Operaciones puras sobre la secuencia de una galería.

Todas calculan la nueva secuencia completa; nunca mutan la original. El orden
es el orden de visualización y puede haber duplicados, por eso todo se
direcciona por índice.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Union

from app.domain.errors import SlotValidationError


def as_sequence(value: Union[str, Sequence[str], None]) -> List[str]:
    """Normaliza el valor actual: None -> [], str suelto -> [str]."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    return list(value)


def append(sequence: Sequence[str], url: str, max_size: Optional[int] = None) -> List[str]:
    """
    Agrega al final. Si se supera `max_size`, descarta desde el frente (FIFO).
    """
    items = [*sequence, url]
    if max_size and len(items) > max_size:
        items = items[len(items) - max_size:]
    return items


def remove_at(sequence: Sequence[str], index: int) -> List[str]:
    """Filtro estable por posición; un índice fuera de rango no quita nada."""
    return [item for position, item in enumerate(sequence) if position != index]


def reorder(sequence: Sequence[str], from_index: int, to_index: int) -> List[str]:
    """
    Saca el elemento en `from_index` y lo reinserta en `to_index` de la
    secuencia ya acortada (splice-out / splice-in, no swap).

    Raises:
        SlotValidationError: si algún índice queda fuera de rango.
    """
    items = list(sequence)
    if not 0 <= from_index < len(items):
        raise SlotValidationError(
            f"from_index {from_index} out of range for gallery of {len(items)}"
        )
    if not 0 <= to_index < len(items):
        raise SlotValidationError(
            f"to_index {to_index} out of range for gallery of {len(items)}"
        )

    moved = items.pop(from_index)
    items.insert(to_index, moved)
    return items
