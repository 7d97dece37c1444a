from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import select

from .. import storage
from ..db import db_session
from ..models import CapoVestiario
from .base import applica, get_or_404, iso

logger = logging.getLogger(__name__)

BUCKET = "Vestiario"

CAMPI_CAPO = ("descrizione", "qta", "taglia", "colore", "prezzo", "note", "attivo")


def capo_flat(c: CapoVestiario) -> dict:
    d: dict[str, Any] = {k: getattr(c, k) for k in CAMPI_CAPO}
    d.update(id=c.id, created_at=iso(c.created_at), foto=c.foto)
    return d


def _valida(c: CapoVestiario) -> None:
    if not c.descrizione:
        raise ValueError("La descrizione è obbligatoria.")
    if c.qta is not None and c.qta < 0:
        raise ValueError("La quantità non può essere negativa.")
    if c.prezzo is not None and c.prezzo < 0:
        raise ValueError("Il prezzo non può essere negativo.")


def lista_vestiario(solo_attivi: bool = False) -> list[dict]:
    with db_session() as s:
        q = select(CapoVestiario).order_by(CapoVestiario.descrizione, CapoVestiario.taglia)
        if solo_attivi:
            q = q.where(CapoVestiario.attivo.is_(True))
        return [capo_flat(c) for c in s.scalars(q)]


def crea_capo(dati: Mapping[str, Any]) -> int:
    with db_session() as s:
        c = CapoVestiario()
        applica(c, dati, CAMPI_CAPO)
        if c.attivo is None:
            c.attivo = True
        _valida(c)
        s.add(c)
        s.flush()
        logger.info("Creato capo vestiario %s (id=%s)", c.descrizione, c.id)
        return c.id


def aggiorna_capo(capo_id: int, dati: Mapping[str, Any]) -> dict:
    with db_session() as s:
        c = get_or_404(s, CapoVestiario, capo_id, "Capo non trovato.")
        applica(c, dati, CAMPI_CAPO)
        _valida(c)
        s.flush()
        return capo_flat(c)


def carica_foto(capo_id: int, filename: str | None, content_type: str | None, data: bytes) -> str:
    storage.valida_immagine(content_type, len(data))
    with storage.sostituzione(BUCKET) as sost, db_session() as s:
        c = get_or_404(s, CapoVestiario, capo_id, "Capo non trovato.")
        c.foto = sost.carica(c.foto, storage.nome_file(f"capo_{capo_id}", filename), data)
    return sost.nuovo


def elimina_capo(capo_id: int) -> None:
    with db_session() as s:
        c = get_or_404(s, CapoVestiario, capo_id, "Capo non trovato.")
        foto = c.foto
        s.delete(c)
        logger.info("Eliminato capo vestiario id=%s", capo_id)
    storage.rimuovi(BUCKET, foto)
