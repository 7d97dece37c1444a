from __future__ import annotations

import logging
from datetime import date
from typing import Any, Mapping

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from .. import storage
from ..calendario import stato_certificato
from ..db import db_session
from ..models import Certificato, Socio
from .base import get_or_404, iso

logger = logging.getLogger(__name__)

BUCKET = "Certificati"

STATI = ("scaduto", "in_scadenza", "valido")


def certificato_flat(c: Certificato, oggi: date) -> dict:
    return {
        "id": c.id,
        "socio_id": c.socio_id,
        "socio": c.socio.nome_completo if c.socio else None,
        "attivita_subacquea": c.attivita_subacquea,
        "data_visita": iso(c.data_visita),
        "data_scadenza": iso(c.data_scadenza),
        "pdf": c.pdf,
        "stato": stato_certificato(c.data_scadenza, oggi),
    }


def lista_certificati(
    stato: str | None = None, cerca: str | None = None, oggi: date | None = None
) -> dict:
    """
    Per ogni socio conta solo l'ultimo certificato (per data visita).
    Le statistiche sono calcolate prima dei filtri.
    """
    if stato and stato not in STATI:
        raise ValueError(f"Stato non valido: {stato}")
    oggi = oggi or date.today()

    with db_session() as s:
        rows = s.scalars(
            select(Certificato)
            .options(selectinload(Certificato.socio))
            .order_by(Certificato.data_visita.desc(), Certificato.id.desc())
        ).all()

        ultimi: dict[int, dict] = {}
        for c in rows:
            if c.socio_id not in ultimi:
                ultimi[c.socio_id] = certificato_flat(c, oggi)

    certificati = sorted(ultimi.values(), key=lambda d: (d["socio"] or "").lower())
    stats = {st: sum(1 for c in certificati if c["stato"] == st) for st in STATI}
    stats["totale"] = len(certificati)

    if stato:
        certificati = [c for c in certificati if c["stato"] == stato]
    if cerca and cerca.strip():
        q = cerca.strip().lower()
        certificati = [c for c in certificati if q in (c["socio"] or "").lower()]

    return {"certificati": certificati, "stats": stats}


def certificati_socio(socio_id: int, oggi: date | None = None) -> list[dict]:
    oggi = oggi or date.today()
    with db_session() as s:
        rows = s.scalars(
            select(Certificato)
            .options(selectinload(Certificato.socio))
            .where(Certificato.socio_id == socio_id)
            .order_by(Certificato.data_visita.desc())
        )
        return [certificato_flat(c, oggi) for c in rows]


def crea_certificato(
    dati: Mapping[str, Any],
    filename: str | None = None,
    content_type: str | None = None,
    data: bytes | None = None,
) -> int:
    if not dati.get("socio_id"):
        raise ValueError("Seleziona un socio.")
    if not dati.get("data_visita"):
        raise ValueError("La data visita è obbligatoria.")
    if data:
        storage.valida_pdf(content_type)

    with db_session() as s:
        get_or_404(s, Socio, dati["socio_id"], "Socio non trovato.")
        c = Certificato(
            socio_id=dati["socio_id"],
            attivita_subacquea=bool(dati.get("attivita_subacquea", True)),
            data_visita=dati["data_visita"],
            data_scadenza=dati.get("data_scadenza"),
        )
        s.add(c)
        s.flush()
        if data:
            # il file viene scritto solo se la riga è stata inserita
            c.pdf = storage.salva(BUCKET, storage.nome_file(f"{c.socio_id}", filename, default_ext="pdf"), data)
        logger.info("Registrato certificato id=%s per socio %s", c.id, c.socio_id)
        return c.id


def elimina_certificato(certificato_id: int) -> None:
    with db_session() as s:
        c = get_or_404(s, Certificato, certificato_id, "Certificato non trovato.")
        pdf = c.pdf
        s.delete(c)
    storage.rimuovi(BUCKET, pdf)
