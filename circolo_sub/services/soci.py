from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import func, or_, select
from sqlalchemy.orm import selectinload

from .. import storage
from ..db import db_session
from ..models import Brevetto, RicaricaCompressore, Socio, TipoSocio
from .base import applica, get_or_404, iso

logger = logging.getLogger(__name__)

CAMPI_SOCIO = (
    "nome", "cognome", "email", "telefono", "attivo",
    "tipo_socio_id", "brevetto_id", "specializzazione",
    "data_nascita", "luogo_nascita", "indirizzo", "cap", "comune", "provincia", "nazione",
    "professione", "codice_fiscale",
    "addetto_ricarica", "assicurazione", "tipo_assicurazione",
    "fin", "nota_fin", "patente_nautica", "nota_patente",
)


def socio_flat(p: Socio) -> dict:
    d: dict[str, Any] = {c: getattr(p, c) for c in CAMPI_SOCIO}
    d["data_nascita"] = iso(p.data_nascita)
    d.update(
        id=p.id,
        created_at=iso(p.created_at),
        avatar=p.avatar,
        brevetto=p.brevetto.nome if p.brevetto else None,
        tipo_socio=p.tipo_socio.descrizione if p.tipo_socio else None,
    )
    return d


def _valida(p: Socio) -> None:
    if not p.nome or not p.cognome:
        raise ValueError("Nome e Cognome sono obbligatori.")
    if p.email:
        p.email = p.email.lower()
    if p.codice_fiscale:
        p.codice_fiscale = p.codice_fiscale.upper()


# =========================
# CRUD
# =========================
def lista_soci(cerca: str | None = None, attivo: bool | None = None) -> list[dict]:
    with db_session() as s:
        q = (
            select(Socio)
            .options(selectinload(Socio.brevetto), selectinload(Socio.tipo_socio))
            .order_by(Socio.cognome, Socio.nome)
        )
        if attivo is not None:
            q = q.where(Socio.attivo.is_(attivo))
        if cerca and cerca.strip():
            like = f"%{cerca.strip().lower()}%"
            q = q.where(
                or_(
                    func.lower(Socio.nome + " " + Socio.cognome).like(like),
                    func.lower(Socio.email).like(like),
                )
            )
        return [socio_flat(p) for p in s.scalars(q)]


def soci_attivi_min() -> list[dict]:
    """Elenco leggero per le select dei form (id + nome)."""
    with db_session() as s:
        rows = s.execute(
            select(Socio.id, Socio.nome, Socio.cognome).where(Socio.attivo.is_(True)).order_by(Socio.cognome)
        ).all()
        return [{"id": r.id, "nome": r.nome, "cognome": r.cognome} for r in rows]


def get_socio(socio_id: int) -> dict:
    with db_session() as s:
        return socio_flat(get_or_404(s, Socio, socio_id, "Socio non trovato."))


def crea_socio(dati: Mapping[str, Any]) -> int:
    with db_session() as s:
        p = Socio()
        applica(p, dati, CAMPI_SOCIO)
        _valida(p)
        s.add(p)
        s.flush()
        logger.info("Creato socio %s (id=%s)", p.nome_completo, p.id)
        return p.id


def aggiorna_socio(socio_id: int, dati: Mapping[str, Any]) -> dict:
    with db_session() as s:
        p = get_or_404(s, Socio, socio_id, "Socio non trovato.")
        applica(p, dati, CAMPI_SOCIO)
        _valida(p)
        s.flush()
        return socio_flat(p)


def elimina_socio(socio_id: int) -> None:
    with db_session() as s:
        p = get_or_404(s, Socio, socio_id, "Socio non trovato.")
        avatar = p.avatar
        s.delete(p)
        logger.info("Eliminato socio %s (id=%s)", p.nome_completo, socio_id)
    storage.rimuovi("Avatar", avatar)


def lista_brevetti() -> list[dict]:
    with db_session() as s:
        rows = s.scalars(select(Brevetto).order_by(Brevetto.ordinamento, Brevetto.nome))
        return [{"id": b.id, "nome": b.nome, "didattica": b.didattica} for b in rows]


def lista_tipi_socio() -> list[dict]:
    with db_session() as s:
        rows = s.scalars(select(TipoSocio).order_by(TipoSocio.id))
        return [{"id": t.id, "descrizione": t.descrizione} for t in rows]


# =========================
# Dashboard
# =========================
def dashboard() -> dict:
    with db_session() as s:
        totale = s.scalar(select(func.count(Socio.id))) or 0
        attivi = s.scalar(select(func.count(Socio.id)).where(Socio.attivo.is_(True))) or 0

        ultima_lettura = s.scalar(
            select(RicaricaCompressore.lettura_finale).order_by(RicaricaCompressore.created_at.desc()).limit(1)
        )

        ultime = s.scalars(
            select(RicaricaCompressore)
            .options(selectinload(RicaricaCompressore.addetto))
            .order_by(RicaricaCompressore.data.desc())
            .limit(5)
        ).all()

        senza_ass_q = select(Socio).where(Socio.attivo.is_(True), Socio.assicurazione.is_(False))
        senza_ass_count = s.scalar(select(func.count()).select_from(senza_ass_q.subquery())) or 0
        senza_ass = s.scalars(senza_ass_q.order_by(Socio.cognome).limit(5)).all()

        return {
            "soci_totali": totale,
            "soci_attivi": attivi,
            "ultima_lettura": ultima_lettura,
            "ultime_ricariche": [
                {
                    "id": r.id,
                    "data": iso(r.data),
                    "lettura_finale": r.lettura_finale,
                    "bombole": (r.mono or 0) + (r.bibo or 0),
                    "addetto": r.addetto.nome_completo if r.addetto else None,
                }
                for r in ultime
            ],
            "senza_assicurazione": senza_ass_count,
            "soci_senza_assicurazione": [{"id": p.id, "nome": p.nome, "cognome": p.cognome} for p in senza_ass],
        }


# =========================
# Profilo (socio collegato all'utente via email)
# =========================
def socio_per_email(email: str) -> Socio | None:
    with db_session() as s:
        return s.scalars(select(Socio).where(func.lower(Socio.email) == email.strip().lower()).limit(1)).first()


def profilo(email: str) -> dict:
    with db_session() as s:
        p = s.scalars(
            select(Socio)
            .options(selectinload(Socio.brevetto), selectinload(Socio.tipo_socio))
            .where(func.lower(Socio.email) == email.strip().lower())
            .limit(1)
        ).first()
        if p is None:
            return {"email": email, "socio": None, "ricariche_effettuate": 0}

        ricariche = s.scalar(
            select(func.count(RicaricaCompressore.id)).where(RicaricaCompressore.addetto_id == p.id)
        ) or 0
        return {"email": email, "socio": socio_flat(p), "ricariche_effettuate": ricariche}


def aggiorna_avatar(socio_id: int, filename: str | None, content_type: str | None, data: bytes) -> str:
    storage.valida_immagine(content_type, len(data))
    with storage.sostituzione("Avatar") as sost, db_session() as s:
        p = get_or_404(s, Socio, socio_id, "Socio non trovato.")
        nuovo = storage.nome_file(f"avatar_{socio_id}", filename)
        p.avatar = sost.carica(p.avatar, nuovo, data)
    return sost.nuovo
