from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select

from .auth_models import RuoloDB, Utente, UtenteRuolo
from .auth_security import hash_password, verify_password
from .db import db_session
from .errors import NonTrovato
from .roles import Ruolo, normalizza_ruolo, risolvi_default

logger = logging.getLogger(__name__)

PASSWORD_MIN_LEN = 6


@dataclass(frozen=True)
class UtenteConRuolo:
    id: str
    email: str
    created_at: datetime
    last_sign_in_at: datetime | None
    role_id: int | None
    role_name: str | None


def _valida_password(password: str) -> None:
    if len(password) < PASSWORD_MIN_LEN:
        raise ValueError(f"La password deve essere di almeno {PASSWORD_MIN_LEN} caratteri.")


def crea_utente(email: str, password: str, role_id: int | None = None) -> str:
    """Crea l'utente e (opzionalmente) la sua assegnazione di ruolo nella stessa transazione."""
    email = email.strip().lower()
    if not email or not password:
        raise ValueError("Email e password sono obbligatorie.")
    _valida_password(password)

    with db_session() as s:
        exists = s.execute(select(Utente).where(Utente.email == email)).scalar_one_or_none()
        if exists:
            raise ValueError("Email già registrata.")

        if role_id is not None and s.get(RuoloDB, role_id) is None:
            raise ValueError("Ruolo non valido.")

        u = Utente(email=email, password_hash=hash_password(password), is_active=True)
        s.add(u)
        s.flush()
        if role_id is not None:
            s.add(UtenteRuolo(user_id=u.id, role_id=role_id))
        logger.info("Creato utente %s (ruolo id=%s)", email, role_id)
        return u.id


def autentica(email: str, password: str) -> Utente | None:
    email = email.strip().lower()
    with db_session() as s:
        u = s.execute(select(Utente).where(Utente.email == email)).scalar_one_or_none()
        if not u or not u.is_active:
            return None
        if not verify_password(password, u.password_hash):
            return None
        u.last_sign_in_at = datetime.utcnow()
        return u


def get_utente_by_id(user_id: str) -> Utente | None:
    with db_session() as s:
        return s.get(Utente, user_id)


def cambia_password(user_id: str, nuova_password: str) -> None:
    _valida_password(nuova_password)
    with db_session() as s:
        u = s.get(Utente, user_id)
        if not u:
            raise NonTrovato("Utente non trovato.")
        u.password_hash = hash_password(nuova_password)


# =========================
# Ruoli
# =========================
def ruolo_assegnato(user_id: str) -> Ruolo | None:
    """
    Ruolo assegnato all'utente, normalizzato sui quattro nomi noti.
    None se non c'è assegnazione o il nome salvato non è riconosciuto.
    """
    with db_session() as s:
        nome = s.execute(
            select(RuoloDB.name)
            .join(UtenteRuolo, UtenteRuolo.role_id == RuoloDB.id)
            .where(UtenteRuolo.user_id == user_id)
            .limit(1)
        ).scalar_one_or_none()
    return normalizza_ruolo(nome)


def risolvi_ruolo(user_id: str) -> Ruolo:
    """Ruolo effettivo per la richiesta corrente: senza ruolo valido si ricade su Socio."""
    return risolvi_default(ruolo_assegnato(user_id))


def lista_ruoli() -> list[dict]:
    with db_session() as s:
        rows = s.execute(select(RuoloDB.id, RuoloDB.name).order_by(RuoloDB.id)).all()
        return [{"id": r.id, "name": r.name} for r in rows]


def lista_utenti_con_ruolo() -> list[UtenteConRuolo]:
    with db_session() as s:
        rows = s.execute(
            select(Utente, RuoloDB.id, RuoloDB.name)
            .outerjoin(UtenteRuolo, UtenteRuolo.user_id == Utente.id)
            .outerjoin(RuoloDB, RuoloDB.id == UtenteRuolo.role_id)
            .order_by(Utente.email)
        ).all()
        return [
            UtenteConRuolo(
                id=u.id,
                email=u.email,
                created_at=u.created_at,
                last_sign_in_at=u.last_sign_in_at,
                role_id=role_id,
                role_name=role_name,
            )
            for u, role_id, role_name in rows
        ]


def assegna_ruolo(user_id: str, role_id: int) -> None:
    """Sostituisce l'eventuale assegnazione esistente (una sola transazione)."""
    with db_session() as s:
        u = s.get(Utente, user_id)
        if not u:
            raise NonTrovato("Utente non trovato.")
        if s.get(RuoloDB, role_id) is None:
            raise ValueError("Ruolo non valido.")

        ur = s.execute(select(UtenteRuolo).where(UtenteRuolo.user_id == user_id)).scalar_one_or_none()
        if ur is None:
            s.add(UtenteRuolo(user_id=user_id, role_id=role_id))
        else:
            ur.role_id = role_id
        logger.info("Ruolo utente %s aggiornato (ruolo id=%s)", u.email, role_id)


def elimina_utente(user_id: str) -> None:
    with db_session() as s:
        u = s.get(Utente, user_id)
        if not u:
            raise NonTrovato("Utente non trovato.")
        # l'assegnazione di ruolo segue l'utente (delete-orphan)
        s.delete(u)
        logger.info("Eliminato utente %s", u.email)
