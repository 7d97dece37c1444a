from __future__ import annotations

from typing import Any, Iterable, Mapping, TypeVar

from sqlalchemy.orm import Session

from ..errors import NonTrovato

T = TypeVar("T")


def get_or_404(s: Session, model: type[T], obj_id: Any, messaggio: str) -> T:
    obj = s.get(model, obj_id)
    if obj is None:
        raise NonTrovato(messaggio)
    return obj


def testo(valore: Any) -> Any:
    """Stringhe vuote -> None, le altre vengono ripulite dagli spazi."""
    if isinstance(valore, str):
        valore = valore.strip()
        return valore or None
    return valore


def applica(obj: Any, dati: Mapping[str, Any], campi: Iterable[str]) -> None:
    """Copia sull'oggetto ORM solo i campi ammessi presenti in `dati`."""
    for campo in campi:
        if campo in dati:
            setattr(obj, campo, testo(dati[campo]))


def obbligatorio(dati: Mapping[str, Any], campo: str, messaggio: str) -> Any:
    valore = testo(dati.get(campo))
    if valore is None:
        raise ValueError(messaggio)
    return valore


def iso(valore: Any) -> Any:
    return valore.isoformat() if valore is not None else None
