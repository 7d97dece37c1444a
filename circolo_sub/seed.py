from __future__ import annotations

from sqlalchemy import select

from .auth_models import RuoloDB
from .db import db_session
from .models import Brevetto, TipoSocio
from .roles import GERARCHIA


def seed_base() -> None:
    """
    Popola dati minimi (idempotente):
    - ruoli
    - brevetti
    - tipi socio
    """
    with db_session() as s:
        # Ruoli (nomi della gerarchia)
        for ruolo in GERARCHIA:
            if s.execute(select(RuoloDB).where(RuoloDB.name == ruolo.value)).scalar_one_or_none() is None:
                s.add(RuoloDB(name=ruolo.value))

        # Brevetti
        brevetti = [
            ("Open Water Diver", "PADI", 1),
            ("Advanced Open Water Diver", "PADI", 2),
            ("Rescue Diver", "PADI", 3),
            ("Divemaster", "PADI", 4),
            ("P1 - Sub una stella", "CMAS", 1),
            ("P2 - Sub due stelle", "CMAS", 2),
            ("P3 - Sub tre stelle", "CMAS", 3),
        ]
        for nome, didattica, ordine in brevetti:
            if s.execute(select(Brevetto).where(Brevetto.nome == nome)).scalar_one_or_none() is None:
                s.add(Brevetto(nome=nome, didattica=didattica, ordinamento=ordine))

        # Tipi socio
        for descrizione in ("Ordinario", "Fondatore", "Onorario", "Junior"):
            if s.execute(select(TipoSocio).where(TipoSocio.descrizione == descrizione)).scalar_one_or_none() is None:
                s.add(TipoSocio(descrizione=descrizione))
