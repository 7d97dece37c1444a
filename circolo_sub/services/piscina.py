from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from ..calendario import stagione_piscina
from ..db import db_session
from ..models import PacchettoPiscina, PresenzaPiscina, Socio, TipoIngresso
from .base import get_or_404, iso, testo

logger = logging.getLogger(__name__)

INGRESSI_PACCHETTO = 5


def pacchetto_flat(p: PacchettoPiscina) -> dict:
    return {
        "id": p.id,
        "socio_id": p.socio_id,
        "socio": p.socio.nome_completo if p.socio else None,
        "data_acquisto": iso(p.data_acquisto),
        "data_scadenza": iso(p.data_scadenza),
        "ingressi_totali": p.ingressi_totali,
        "ingressi_usati": p.ingressi_usati,
        "ingressi_residui": p.ingressi_residui,
        "attivo": p.attivo,
    }


def presenza_flat(p: PresenzaPiscina) -> dict:
    return {
        "id": p.id,
        "socio_id": p.socio_id,
        "socio": p.socio.nome_completo if p.socio else None,
        "data_presenza": iso(p.data_presenza),
        "orario_ingresso": p.orario_ingresso.strftime("%H:%M:%S") if p.orario_ingresso else None,
        "tipo_ingresso": p.tipo_ingresso.value,
        "pagato": p.pagato,
        "importo": p.importo,
        "note": p.note,
        "pacchetto_id": p.pacchetto_id,
    }


def _tipo(v: Any) -> TipoIngresso:
    if isinstance(v, TipoIngresso):
        return v
    try:
        return TipoIngresso(v)
    except ValueError:
        raise ValueError(f"Tipo ingresso non valido: {v}") from None


# =========================
# Pacchetti
# =========================
def crea_pacchetto(
    socio_id: int,
    data_scadenza: date | None,
    data_acquisto: date | None = None,
    ingressi_totali: int = INGRESSI_PACCHETTO,
) -> int:
    if data_scadenza is None:
        raise ValueError("Inserisci la data di scadenza.")
    if ingressi_totali < 1:
        raise ValueError("Il pacchetto deve avere almeno un ingresso.")
    data_acquisto = data_acquisto or date.today()
    if data_scadenza < data_acquisto:
        raise ValueError("La scadenza precede la data di acquisto.")

    with db_session() as s:
        get_or_404(s, Socio, socio_id, "Socio non trovato.")
        p = PacchettoPiscina(
            socio_id=socio_id,
            data_acquisto=data_acquisto,
            data_scadenza=data_scadenza,
            ingressi_totali=ingressi_totali,
            ingressi_usati=0,
            attivo=True,
        )
        s.add(p)
        s.flush()
        logger.info("Creato pacchetto piscina id=%s per socio %s", p.id, socio_id)
        return p.id


def disattiva_pacchetto(pacchetto_id: int) -> None:
    with db_session() as s:
        p = get_or_404(s, PacchettoPiscina, pacchetto_id, "Pacchetto non trovato.")
        p.attivo = False
        logger.info("Disattivato pacchetto piscina id=%s", pacchetto_id)


def lista_pacchetti(solo_attivi: bool = True, socio_id: int | None = None) -> list[dict]:
    with db_session() as s:
        q = (
            select(PacchettoPiscina)
            .options(selectinload(PacchettoPiscina.socio))
            .order_by(PacchettoPiscina.data_acquisto.desc(), PacchettoPiscina.id.desc())
        )
        if solo_attivi:
            q = q.where(PacchettoPiscina.attivo.is_(True))
        if socio_id is not None:
            q = q.where(PacchettoPiscina.socio_id == socio_id)
        return [pacchetto_flat(p) for p in s.scalars(q)]


def _pacchetto_utilizzabile(s, socio_id: int, giorno: date) -> PacchettoPiscina | None:
    """Il pacchetto attivo che scade prima, tra quelli non scaduti e con ingressi residui."""
    return s.scalars(
        select(PacchettoPiscina)
        .where(
            PacchettoPiscina.socio_id == socio_id,
            PacchettoPiscina.attivo.is_(True),
            PacchettoPiscina.data_scadenza >= giorno,
            PacchettoPiscina.ingressi_usati < PacchettoPiscina.ingressi_totali,
        )
        .order_by(PacchettoPiscina.data_scadenza, PacchettoPiscina.id)
        .limit(1)
    ).first()


# =========================
# Ingressi
# =========================
def registra_ingresso(
    socio_id: int,
    tipo_ingresso: Any,
    importo: float | None = None,
    note: str | None = None,
    adesso: datetime | None = None,
) -> int:
    """
    Ingresso a pacchetto: scala un ingresso dal pacchetto e registra la presenza
    nella stessa transazione. Ingresso singolo: importo obbligatorio, pagato.
    """
    tipo = _tipo(tipo_ingresso)
    adesso = adesso or datetime.now()
    if tipo == TipoIngresso.SINGOLO and not importo:
        raise ValueError("Inserisci l'importo per ingresso singolo")
    if importo is not None and importo < 0:
        raise ValueError("L'importo non può essere negativo.")

    with db_session() as s:
        get_or_404(s, Socio, socio_id, "Socio non trovato.")
        presenza = PresenzaPiscina(
            socio_id=socio_id,
            data_presenza=adesso.date(),
            orario_ingresso=time(adesso.hour, adesso.minute, adesso.second),
            tipo_ingresso=tipo,
            pagato=tipo == TipoIngresso.SINGOLO,
            importo=importo if tipo == TipoIngresso.SINGOLO else None,
            note=testo(note),
        )
        if tipo == TipoIngresso.ABBONAMENTO:
            pacchetto = _pacchetto_utilizzabile(s, socio_id, adesso.date())
            if pacchetto is None:
                raise ValueError("Nessun pacchetto attivo disponibile per questo socio")
            pacchetto.ingressi_usati += 1
            presenza.pacchetto_id = pacchetto.id
        s.add(presenza)
        s.flush()
        logger.info("Ingresso piscina %s registrato per socio %s", tipo.value, socio_id)
        return presenza.id


def elimina_presenza(presenza_id: int) -> None:
    """Annulla un ingresso; se era a pacchetto l'ingresso viene restituito."""
    with db_session() as s:
        p = get_or_404(s, PresenzaPiscina, presenza_id, "Presenza non trovata.")
        if p.pacchetto_id is not None:
            pacchetto = s.get(PacchettoPiscina, p.pacchetto_id)
            if pacchetto is not None and pacchetto.ingressi_usati > 0:
                pacchetto.ingressi_usati -= 1
        s.delete(p)
        logger.info("Annullato ingresso piscina id=%s", presenza_id)


# =========================
# Statistiche
# =========================
def statistiche_giorno(giorno: date | None = None) -> dict:
    giorno = giorno or date.today()
    with db_session() as s:
        rows = s.scalars(
            select(PresenzaPiscina)
            .options(selectinload(PresenzaPiscina.socio))
            .where(PresenzaPiscina.data_presenza == giorno)
            .order_by(PresenzaPiscina.orario_ingresso)
        ).all()
        presenze = [presenza_flat(p) for p in rows]

    singoli = [p for p in presenze if p["tipo_ingresso"] == TipoIngresso.SINGOLO.value]
    return {
        "data": giorno.isoformat(),
        "totale_presenti": len(presenze),
        "ingressi_abbonamento": len(presenze) - len(singoli),
        "ingressi_singoli": len(singoli),
        "introito_singoli": round(sum(p["importo"] or 0 for p in singoli), 2),
        "presenze": presenze,
    }


def riepilogo_stagione(oggi: date | None = None) -> dict:
    inizio, fine = stagione_piscina(oggi or date.today())
    with db_session() as s:
        rows = s.execute(
            select(PresenzaPiscina.data_presenza, PresenzaPiscina.tipo_ingresso, PresenzaPiscina.socio_id).where(
                PresenzaPiscina.data_presenza >= inizio, PresenzaPiscina.data_presenza <= fine
            )
        ).all()

    per_tipo = Counter(r.tipo_ingresso.value for r in rows)
    per_mese = Counter(r.data_presenza.strftime("%Y-%m") for r in rows)
    return {
        "inizio": inizio.isoformat(),
        "fine": fine.isoformat(),
        "totale_ingressi": len(rows),
        "ingressi_abbonamento": per_tipo.get(TipoIngresso.ABBONAMENTO.value, 0),
        "ingressi_singoli": per_tipo.get(TipoIngresso.SINGOLO.value, 0),
        "soci_distinti": len({r.socio_id for r in rows}),
        "per_mese": dict(sorted(per_mese.items())),
    }


def dati_socio(socio_id: int, oggi: date | None = None) -> dict:
    """Pacchetti e presenze stagionali di un socio (vista del singolo socio)."""
    oggi = oggi or date.today()
    inizio, fine = stagione_piscina(oggi)
    with db_session() as s:
        get_or_404(s, Socio, socio_id, "Socio non trovato.")
        pacchetti = s.scalars(
            select(PacchettoPiscina)
            .options(selectinload(PacchettoPiscina.socio))
            .where(PacchettoPiscina.socio_id == socio_id)
            .order_by(PacchettoPiscina.data_acquisto.desc())
        ).all()
        presenze = s.scalars(
            select(PresenzaPiscina)
            .options(selectinload(PresenzaPiscina.socio))
            .where(
                PresenzaPiscina.socio_id == socio_id,
                PresenzaPiscina.data_presenza >= inizio,
                PresenzaPiscina.data_presenza <= fine,
            )
            .order_by(PresenzaPiscina.data_presenza.desc(), PresenzaPiscina.orario_ingresso.desc())
        ).all()
        return {
            "socio_id": socio_id,
            "stagione": {"inizio": inizio.isoformat(), "fine": fine.isoformat()},
            "pacchetti": [pacchetto_flat(p) for p in pacchetti],
            "presenze": [presenza_flat(p) for p in presenze],
            "ingressi_residui": sum(
                p.ingressi_residui for p in pacchetti if p.attivo and p.data_scadenza >= oggi
            ),
            "gia_entrato_oggi": any(p.data_presenza == oggi for p in presenze),
        }
