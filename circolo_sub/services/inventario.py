from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import func, select

from .. import storage
from ..db import db_session
from ..models import ArticoloInventario, NoleggioDettaglio
from .base import applica, get_or_404, iso

logger = logging.getLogger(__name__)

BUCKET = "Inventario"

CAMPI_ARTICOLO = (
    "nome", "descrizione", "categoria", "stato", "posizione",
    "valore_attuale", "distrutto", "noleggiabile", "note",
)


def articolo_flat(a: ArticoloInventario) -> dict:
    d: dict[str, Any] = {c: getattr(a, c) for c in CAMPI_ARTICOLO}
    d.update(id=a.id, created_at=iso(a.created_at), foto=a.foto)
    return d


def _valida(a: ArticoloInventario) -> None:
    if not a.nome:
        raise ValueError("Il nome è obbligatorio.")
    if a.valore_attuale is not None and a.valore_attuale < 0:
        raise ValueError("Il valore non può essere negativo.")


def lista_articoli(
    cerca: str | None = None,
    categoria: str | None = None,
    stato: str | None = None,
    solo_noleggiabili: bool = False,
) -> dict:
    with db_session() as s:
        tutti = s.scalars(select(ArticoloInventario).order_by(ArticoloInventario.nome)).all()
        stats = {
            "totale": len(tutti),
            "attivi": sum(1 for a in tutti if not a.distrutto),
            "distrutti": sum(1 for a in tutti if a.distrutto),
            # centesimi, solo articoli non distrutti
            "valore_totale": sum(a.valore_attuale or 0 for a in tutti if not a.distrutto),
        }
        categorie = sorted({a.categoria for a in tutti if a.categoria})
        rows = [articolo_flat(a) for a in tutti]

    if solo_noleggiabili:
        rows = [r for r in rows if r["noleggiabile"] and not r["distrutto"]]
    if categoria:
        rows = [r for r in rows if r["categoria"] == categoria]
    if stato:
        rows = [r for r in rows if r["stato"] == stato]
    if cerca and cerca.strip():
        q = cerca.strip().lower()
        rows = [
            r for r in rows
            if any(q in (r[c] or "").lower() for c in ("nome", "descrizione", "posizione"))
        ]
    return {"articoli": rows, "stats": stats, "categorie": categorie}


def get_articolo(articolo_id: int) -> dict:
    with db_session() as s:
        return articolo_flat(get_or_404(s, ArticoloInventario, articolo_id, "Articolo non trovato."))


def crea_articolo(dati: Mapping[str, Any]) -> int:
    with db_session() as s:
        a = ArticoloInventario()
        applica(a, dati, CAMPI_ARTICOLO)
        _valida(a)
        s.add(a)
        s.flush()
        logger.info("Creato articolo %s (id=%s)", a.nome, a.id)
        return a.id


def aggiorna_articolo(articolo_id: int, dati: Mapping[str, Any]) -> dict:
    with db_session() as s:
        a = get_or_404(s, ArticoloInventario, articolo_id, "Articolo non trovato.")
        applica(a, dati, CAMPI_ARTICOLO)
        _valida(a)
        s.flush()
        return articolo_flat(a)


def carica_foto(articolo_id: int, filename: str | None, content_type: str | None, data: bytes) -> str:
    storage.valida_immagine(content_type, len(data))
    with storage.sostituzione(BUCKET) as sost, db_session() as s:
        a = get_or_404(s, ArticoloInventario, articolo_id, "Articolo non trovato.")
        a.foto = sost.carica(a.foto, storage.nome_file(f"articolo_{articolo_id}", filename), data)
    return sost.nuovo


def elimina_articolo(articolo_id: int) -> None:
    with db_session() as s:
        a = get_or_404(s, ArticoloInventario, articolo_id, "Articolo non trovato.")
        in_uso = s.scalar(
            select(func.count(NoleggioDettaglio.id)).where(NoleggioDettaglio.articolo_id == articolo_id)
        )
        if in_uso:
            raise ValueError("Articolo presente in uno o più noleggi: impossibile eliminarlo.")
        foto = a.foto
        s.delete(a)
        logger.info("Eliminato articolo %s (id=%s)", a.nome, articolo_id)
    storage.rimuovi(BUCKET, foto)
