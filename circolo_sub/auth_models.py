from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class Utente(Base):
    """
    Utente applicativo per autenticazione.
    - email univoca (login)
    - password_hash con bcrypt (passlib)
    """
    __tablename__ = "utenti"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    assegnazione: Mapped["UtenteRuolo"] = relationship(
        back_populates="utente", cascade="all, delete-orphan", uselist=False
    )


class RuoloDB(Base):
    """Riga della tabella ruoli: il nome è testo libero, normalizzato in lettura."""
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)


class UtenteRuolo(Base):
    __tablename__ = "users_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # al massimo un ruolo per utente
    user_id: Mapped[str] = mapped_column(ForeignKey("utenti.id"), unique=True, nullable=False)
    role_id: Mapped[int] = mapped_column(ForeignKey("roles.id"), nullable=False)

    utente: Mapped["Utente"] = relationship(back_populates="assegnazione")
    ruolo: Mapped["RuoloDB"] = relationship()
