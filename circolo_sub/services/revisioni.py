from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping, Sequence

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from .. import storage
from ..calendario import ANNI_VALIDITA_REVISIONE, anni_fa
from ..db import db_session
from ..errors import NonTrovato
from ..models import Bombola, EsitoRevisione, Revisione, RevisioneDettaglio, StatoRevisione
from .base import applica, get_or_404, iso, obbligatorio

logger = logging.getLogger(__name__)

BUCKET = "Revisioni"

CAMPI_REVISIONE = (
    "data_bombole_pronte", "data_collaudo", "luogo", "centro_revisione", "costo_revisione", "arrotondamento",
)


def _stato(v: Any) -> StatoRevisione:
    if isinstance(v, StatoRevisione):
        return v
    try:
        return StatoRevisione(v)
    except ValueError:
        raise ValueError(f"Stato revisione non valido: {v}") from None


def _esito(v: Any) -> EsitoRevisione:
    if isinstance(v, EsitoRevisione):
        return v
    try:
        return EsitoRevisione(v)
    except ValueError:
        raise ValueError(f"Esito non valido: {v}") from None


def dettaglio_flat(d: RevisioneDettaglio) -> dict:
    b = d.bombola
    return {
        "id": d.id,
        "bombola_id": d.bombola_id,
        "matricola": b.matricola if b else None,
        "volume": b.volume if b else None,
        "proprietario": b.proprietario.nome_completo if b and b.proprietario else None,
        "esito": d.esito.value,
        "pagato": d.pagato,
    }


def revisione_flat(r: Revisione, con_dettagli: bool = False) -> dict:
    out = {
        "id": r.id,
        "created_at": iso(r.created_at),
        "data_bombole_pronte": iso(r.data_bombole_pronte),
        "data_collaudo": iso(r.data_collaudo),
        "luogo": r.luogo,
        "centro_revisione": r.centro_revisione,
        "costo_revisione": r.costo_revisione,
        "arrotondamento": r.arrotondamento,
        "stato": r.stato.value,
        "certificato": r.certificato,
        "data_revisione_terminata": iso(r.data_revisione_terminata),
        "n_bombole": len(r.dettagli),
    }
    if con_dettagli:
        out["dettagli"] = [dettaglio_flat(d) for d in r.dettagli]
    return out


def _carica(s, revisione_id: int) -> Revisione:
    r = s.scalars(
        select(Revisione)
        .options(
            selectinload(Revisione.dettagli)
            .selectinload(RevisioneDettaglio.bombola)
            .selectinload(Bombola.proprietario)
        )
        .where(Revisione.id == revisione_id)
    ).first()
    if r is None:
        raise NonTrovato("Revisione non trovata.")
    return r


def lista_revisioni() -> dict:
    with db_session() as s:
        rows = s.scalars(
            select(Revisione)
            .options(selectinload(Revisione.dettagli))
            .order_by(Revisione.data_collaudo.desc(), Revisione.id.desc())
        ).all()
        stats = {stato.value: 0 for stato in StatoRevisione}
        for r in rows:
            stats[r.stato.value] += 1
        stats["totale"] = len(rows)
        return {"revisioni": [revisione_flat(r) for r in rows], "stats": stats}


def get_revisione(revisione_id: int) -> dict:
    with db_session() as s:
        return revisione_flat(_carica(s, revisione_id), con_dettagli=True)


def bombole_candidate(anni: int | None = ANNI_VALIDITA_REVISIONE, oggi: date | None = None) -> list[dict]:
    """
    Bombole non dismesse da proporre per una nuova sessione.
    Con `anni` restano solo quelle con ultimo collaudo ad almeno `anni` anni fa;
    quelle mai revisionate sono sempre candidate.
    """
    oggi = oggi or date.today()
    with db_session() as s:
        rows = s.scalars(
            select(Bombola)
            .options(selectinload(Bombola.proprietario))
            .where(Bombola.dismessa.is_(False))
            .order_by(Bombola.matricola)
        ).all()
        if anni is not None:
            limite = anni_fa(oggi, anni)
            rows = [b for b in rows if b.ultima_revisione is None or b.ultima_revisione <= limite]
        return [
            {
                "id": b.id,
                "matricola": b.matricola,
                "volume": b.volume,
                "ultima_revisione": iso(b.ultima_revisione),
                "proprietario": b.proprietario.nome_completo if b.proprietario else None,
            }
            for b in rows
        ]


def crea_revisione(dati: Mapping[str, Any], bombole_ids: Sequence[int]) -> int:
    """Testata e righe di dettaglio nella stessa transazione."""
    ids = list(dict.fromkeys(bombole_ids or []))
    if not ids:
        raise ValueError("Seleziona almeno una bombola.")
    obbligatorio(dati, "data_bombole_pronte", "La data bombole pronte è obbligatoria.")
    obbligatorio(dati, "data_collaudo", "La data collaudo è obbligatoria.")
    obbligatorio(dati, "centro_revisione", "Il centro revisione è obbligatorio.")

    with db_session() as s:
        trovate = set(s.scalars(select(Bombola.id).where(Bombola.id.in_(ids))))
        mancanti = [i for i in ids if i not in trovate]
        if mancanti:
            raise ValueError(f"Bombole inesistenti: {mancanti}")

        r = Revisione(stato=_stato(dati.get("stato") or StatoRevisione.DA_PREPARARE))
        applica(r, dati, CAMPI_REVISIONE)
        r.costo_revisione = r.costo_revisione or 0
        r.arrotondamento = r.arrotondamento or 0
        r.dettagli = [RevisioneDettaglio(bombola_id=i) for i in ids]
        s.add(r)
        s.flush()
        logger.info("Creata revisione id=%s con %d bombole", r.id, len(ids))
        return r.id


def aggiorna_revisione(revisione_id: int, dati: Mapping[str, Any], oggi: date | None = None) -> dict:
    """
    Aggiorna testata e stato. Il passaggio a 'Tornate' chiude la sessione:
    data fine revisione e ultima_revisione delle bombole con esito OK.
    """
    with db_session() as s:
        r = _carica(s, revisione_id)
        applica(r, dati, CAMPI_REVISIONE)
        if dati.get("stato") is not None:
            nuovo = _stato(dati["stato"])
            if nuovo == StatoRevisione.TORNATE and r.stato != StatoRevisione.TORNATE:
                _chiudi(r, oggi or date.today())
            r.stato = nuovo
        s.flush()
        return revisione_flat(r, con_dettagli=True)


def _chiudi(r: Revisione, oggi: date) -> None:
    r.data_revisione_terminata = r.data_revisione_terminata or oggi
    for d in r.dettagli:
        if d.esito == EsitoRevisione.OK and d.bombola is not None:
            d.bombola.ultima_revisione = r.data_collaudo
    logger.info("Chiusa revisione id=%s", r.id)


def aggiorna_dettaglio(
    revisione_id: int, bombola_id: int, esito: Any | None = None, pagato: bool | None = None
) -> dict:
    with db_session() as s:
        d = s.scalars(
            select(RevisioneDettaglio).where(
                RevisioneDettaglio.revisione_id == revisione_id,
                RevisioneDettaglio.bombola_id == bombola_id,
            )
        ).first()
        if d is None:
            raise NonTrovato("Bombola non presente nella revisione.")
        if esito is not None:
            d.esito = _esito(esito)
            # sessione già chiusa: l'esito OK aggiorna subito la bombola
            if d.esito == EsitoRevisione.OK and d.revisione.stato == StatoRevisione.TORNATE:
                d.bombola.ultima_revisione = d.revisione.data_collaudo
        if pagato is not None:
            d.pagato = bool(pagato)
        s.flush()
        return dettaglio_flat(d)


def carica_certificato(revisione_id: int, filename: str | None, content_type: str | None, data: bytes) -> str:
    storage.valida_pdf(content_type)
    with storage.sostituzione(BUCKET) as sost, db_session() as s:
        r = get_or_404(s, Revisione, revisione_id, "Revisione non trovata.")
        nuovo = storage.nome_file(f"revisione_{revisione_id}", filename, default_ext="pdf")
        r.certificato = sost.carica(r.certificato, nuovo, data)
    return sost.nuovo


def elimina_revisione(revisione_id: int) -> None:
    with db_session() as s:
        r = get_or_404(s, Revisione, revisione_id, "Revisione non trovata.")
        certificato = r.certificato
        s.delete(r)
        logger.info("Eliminata revisione id=%s", revisione_id)
    storage.rimuovi(BUCKET, certificato)
