from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..db import db_session
from ..models import RicaricaCompressore, Socio
from .base import applica, get_or_404, iso

logger = logging.getLogger(__name__)

CAMPI_RICARICA = ("data", "mono", "bibo", "lettura_finale", "addetto_id", "note")


def ricarica_flat(r: RicaricaCompressore) -> dict:
    return {
        "id": r.id,
        "data": iso(r.data),
        "mono": r.mono,
        "bibo": r.bibo,
        "lettura_finale": r.lettura_finale,
        "addetto_id": r.addetto_id,
        "addetto": r.addetto.nome_completo if r.addetto else None,
        "note": r.note,
        "created_at": iso(r.created_at),
    }


def _valida(r: RicaricaCompressore, s) -> None:
    for campo in ("mono", "bibo"):
        v = getattr(r, campo)
        if v is not None and v < 0:
            raise ValueError("Il numero di bombole non può essere negativo.")
    if r.addetto_id is not None:
        addetto = s.get(Socio, r.addetto_id)
        if addetto is None or not addetto.addetto_ricarica:
            raise ValueError("Addetto non valido.")


def lista_ricariche(limit: int = 100) -> dict:
    """Ultime ricariche (per data) con totali per il riepilogo del compressore."""
    with db_session() as s:
        rows = s.scalars(
            select(RicaricaCompressore)
            .options(selectinload(RicaricaCompressore.addetto))
            .order_by(RicaricaCompressore.data.desc(), RicaricaCompressore.id.desc())
            .limit(limit)
        ).all()
        ricariche = [ricarica_flat(r) for r in rows]
        return {
            "ricariche": ricariche,
            "totale_bombole": sum((r["mono"] or 0) + (r["bibo"] or 0) for r in ricariche),
            "ultima_lettura": ricariche[0]["lettura_finale"] if ricariche else None,
        }


def lista_addetti() -> list[dict]:
    with db_session() as s:
        rows = s.execute(
            select(Socio.id, Socio.nome, Socio.cognome)
            .where(Socio.addetto_ricarica.is_(True), Socio.attivo.is_(True))
            .order_by(Socio.cognome)
        ).all()
        return [{"id": r.id, "nome": r.nome, "cognome": r.cognome} for r in rows]


def crea_ricarica(dati: Mapping[str, Any]) -> int:
    with db_session() as s:
        r = RicaricaCompressore()
        applica(r, dati, CAMPI_RICARICA)
        _valida(r, s)
        s.add(r)
        s.flush()
        logger.info("Registrata ricarica compressore id=%s", r.id)
        return r.id


def aggiorna_ricarica(ricarica_id: int, dati: Mapping[str, Any]) -> dict:
    with db_session() as s:
        r = get_or_404(s, RicaricaCompressore, ricarica_id, "Ricarica non trovata.")
        applica(r, dati, CAMPI_RICARICA)
        _valida(r, s)
        s.flush()
        return ricarica_flat(r)


def elimina_ricarica(ricarica_id: int) -> None:
    with db_session() as s:
        s.delete(get_or_404(s, RicaricaCompressore, ricarica_id, "Ricarica non trovata."))
