from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from .. import storage
from ..calendario import revisione_scaduta
from ..db import db_session
from ..models import Bombola
from .base import applica, get_or_404, iso

logger = logging.getLogger(__name__)

BUCKET = "Bombole"

CAMPI_BOMBOLA = (
    "proprietario_id", "matricola", "codice", "etichetta", "volume", "marca",
    "attacco", "rubinetto", "materiale", "nota", "stato_revisione", "dismessa", "ultima_revisione",
)

FILTRI = ("tutte", "attive", "dismesse")


def bombola_flat(b: Bombola) -> dict:
    d: dict[str, Any] = {c: getattr(b, c) for c in CAMPI_BOMBOLA}
    d.update(
        id=b.id,
        created_at=iso(b.created_at),
        ultima_revisione=iso(b.ultima_revisione),
        foto=b.foto,
        proprietario=b.proprietario.nome_completo if b.proprietario else None,
    )
    return d


def _valida(b: Bombola) -> None:
    if not b.matricola:
        raise ValueError("La matricola è obbligatoria.")
    if not b.volume:
        raise ValueError("Il volume è obbligatorio.")


def _match(d: dict, q: str) -> bool:
    campi = (d["matricola"], d["etichetta"], d["marca"], d["proprietario"])
    return any(q in (c or "").lower() for c in campi)


def lista_bombole(filtro: str = "attive", cerca: str | None = None, oggi: date | None = None) -> dict:
    """
    Elenco filtrato + statistiche sull'intero parco.
    filtro: tutte | attive | dismesse
    """
    if filtro not in FILTRI:
        raise ValueError(f"Filtro non valido: {filtro}")
    oggi = oggi or date.today()

    with db_session() as s:
        tutte = s.scalars(
            select(Bombola).options(selectinload(Bombola.proprietario)).order_by(Bombola.id)
        ).all()

        stats = {
            "totale": len(tutte),
            "attive": sum(1 for b in tutte if not b.dismessa),
            "dismesse": sum(1 for b in tutte if b.dismessa),
            "da_revisionare": sum(
                1 for b in tutte if not b.dismessa and revisione_scaduta(b.ultima_revisione, oggi)
            ),
        }

        rows = [bombola_flat(b) for b in tutte]

    if filtro == "attive":
        rows = [r for r in rows if not r["dismessa"]]
    elif filtro == "dismesse":
        rows = [r for r in rows if r["dismessa"]]
    if cerca and cerca.strip():
        q = cerca.strip().lower()
        rows = [r for r in rows if _match(r, q)]

    return {"bombole": rows, "stats": stats}


def get_bombola(bombola_id: int) -> dict:
    with db_session() as s:
        return bombola_flat(get_or_404(s, Bombola, bombola_id, "Bombola non trovata."))


def crea_bombola(dati: Mapping[str, Any]) -> int:
    with db_session() as s:
        b = Bombola()
        applica(b, dati, CAMPI_BOMBOLA)
        _valida(b)
        s.add(b)
        s.flush()
        logger.info("Creata bombola %s (id=%s)", b.matricola, b.id)
        return b.id


def aggiorna_bombola(bombola_id: int, dati: Mapping[str, Any]) -> dict:
    with db_session() as s:
        b = get_or_404(s, Bombola, bombola_id, "Bombola non trovata.")
        applica(b, dati, CAMPI_BOMBOLA)
        _valida(b)
        s.flush()
        return bombola_flat(b)


def carica_foto(bombola_id: int, filename: str | None, content_type: str | None, data: bytes) -> str:
    storage.valida_immagine(content_type, len(data))
    with storage.sostituzione(BUCKET) as sost, db_session() as s:
        b = get_or_404(s, Bombola, bombola_id, "Bombola non trovata.")
        prefisso = str(b.proprietario_id) if b.proprietario_id else "club"
        b.foto = sost.carica(b.foto, storage.nome_file(prefisso, filename), data)
    return sost.nuovo


def elimina_bombola(bombola_id: int) -> None:
    with db_session() as s:
        b = get_or_404(s, Bombola, bombola_id, "Bombola non trovata.")
        foto = b.foto
        s.delete(b)
        logger.info("Eliminata bombola %s (id=%s)", b.matricola, bombola_id)
    storage.rimuovi(BUCKET, foto)
