from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..db import db_session
from ..errors import NonTrovato
from ..models import ArticoloInventario, Noleggio, NoleggioDettaglio, Socio, StatoNoleggio
from .base import get_or_404, iso, testo

logger = logging.getLogger(__name__)


def noleggio_flat(n: Noleggio) -> dict:
    return {
        "id": n.id,
        "created_at": iso(n.created_at),
        "socio_id": n.socio_id,
        "socio": n.socio.nome_completo if n.socio else None,
        "data_inizio": iso(n.data_inizio),
        "data_fine_prevista": iso(n.data_fine_prevista),
        "data_restituzione": iso(n.data_restituzione),
        "stato": n.stato.value,
        "note": n.note,
        "righe": [
            {
                "id": r.id,
                "articolo_id": r.articolo_id,
                "articolo": r.articolo.nome if r.articolo else None,
                "quantita": r.quantita,
            }
            for r in n.righe
        ],
    }


def _opzioni():
    return (
        selectinload(Noleggio.socio),
        selectinload(Noleggio.righe).selectinload(NoleggioDettaglio.articolo),
    )


def lista_noleggi(stato: str | None = None, cerca: str | None = None) -> list[dict]:
    with db_session() as s:
        q = select(Noleggio).options(*_opzioni()).order_by(Noleggio.data_inizio.desc(), Noleggio.id.desc())
        if stato:
            try:
                q = q.where(Noleggio.stato == StatoNoleggio(stato))
            except ValueError:
                raise ValueError(f"Stato non valido: {stato}") from None
        rows = [noleggio_flat(n) for n in s.scalars(q)]

    if cerca and cerca.strip():
        needle = cerca.strip().lower()
        rows = [r for r in rows if needle in (r["socio"] or "").lower()]
    return rows


def get_noleggio(noleggio_id: int) -> dict:
    with db_session() as s:
        n = s.scalars(select(Noleggio).options(*_opzioni()).where(Noleggio.id == noleggio_id)).first()
        if n is None:
            raise NonTrovato("Noleggio non trovato.")
        return noleggio_flat(n)


def crea_noleggio(dati: Mapping[str, Any], righe: Sequence[Mapping[str, Any]]) -> int:
    """
    Testata + righe in un'unica transazione: se una riga non è valida
    non resta nessun noleggio orfano.
    """
    if not dati.get("socio_id"):
        raise ValueError("Seleziona un socio.")
    if not dati.get("data_inizio") or not dati.get("data_fine_prevista"):
        raise ValueError("Date di inizio e fine previste obbligatorie.")
    if dati["data_fine_prevista"] < dati["data_inizio"]:
        raise ValueError("La data di fine prevista precede l'inizio.")
    if not righe:
        raise ValueError("Aggiungi almeno un articolo.")

    with db_session() as s:
        get_or_404(s, Socio, dati["socio_id"], "Socio non trovato.")
        n = Noleggio(
            socio_id=dati["socio_id"],
            data_inizio=dati["data_inizio"],
            data_fine_prevista=dati["data_fine_prevista"],
            stato=StatoNoleggio.ATTIVO,
            note=testo(dati.get("note")),
        )
        for riga in righe:
            quantita = int(riga["quantita"]) if riga.get("quantita") is not None else 1
            if quantita < 1:
                raise ValueError("La quantità deve essere almeno 1.")
            articolo = s.get(ArticoloInventario, riga.get("articolo_id"))
            if articolo is None:
                raise ValueError(f"Articolo inesistente: {riga.get('articolo_id')}")
            if not articolo.noleggiabile or articolo.distrutto:
                raise ValueError(f"Articolo non noleggiabile: {articolo.nome}")
            n.righe.append(NoleggioDettaglio(articolo_id=articolo.id, quantita=quantita))
        s.add(n)
        s.flush()
        logger.info("Creato noleggio id=%s (%d righe) per socio %s", n.id, len(n.righe), n.socio_id)
        return n.id


def restituisci(noleggio_id: int, data_restituzione: date | None) -> dict:
    if data_restituzione is None:
        raise ValueError("La data di restituzione è obbligatoria.")
    with db_session() as s:
        n = s.scalars(select(Noleggio).options(*_opzioni()).where(Noleggio.id == noleggio_id)).first()
        if n is None:
            raise NonTrovato("Noleggio non trovato.")
        if n.stato == StatoNoleggio.COMPLETATO:
            raise ValueError("Noleggio già completato.")
        if data_restituzione < n.data_inizio:
            raise ValueError("La restituzione precede l'inizio del noleggio.")
        n.data_restituzione = data_restituzione
        n.stato = StatoNoleggio.COMPLETATO
        s.flush()
        logger.info("Noleggio id=%s restituito il %s", n.id, data_restituzione)
        return noleggio_flat(n)


def elimina_noleggio(noleggio_id: int) -> None:
    with db_session() as s:
        s.delete(get_or_404(s, Noleggio, noleggio_id, "Noleggio non trovato."))
        logger.info("Eliminato noleggio id=%s", noleggio_id)
