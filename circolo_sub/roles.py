"""
Gerarchia dei ruoli: Admin > Consiglio > Staff > Socio.

Un ruolo soddisfa ogni requisito di livello uguale o inferiore.
"""
from __future__ import annotations

import enum


class Ruolo(str, enum.Enum):
    ADMIN = "Admin"
    CONSIGLIO = "Consiglio"
    STAFF = "Staff"
    SOCIO = "Socio"


# indice 0 = più privilegiato
GERARCHIA: tuple[Ruolo, ...] = (Ruolo.ADMIN, Ruolo.CONSIGLIO, Ruolo.STAFF, Ruolo.SOCIO)

RUOLO_DEFAULT = Ruolo.SOCIO


def normalizza_ruolo(nome: str | Ruolo | None) -> Ruolo | None:
    """Confronto case-insensitive con i quattro ruoli noti; None se non corrisponde."""
    if isinstance(nome, Ruolo):
        return nome
    if not nome:
        return None
    nome = nome.strip().lower()
    for r in GERARCHIA:
        if r.value.lower() == nome:
            return r
    return None


def rango(ruolo: str | Ruolo | None) -> int:
    """
    Posizione nella gerarchia (0 = Admin).
    Un nome sconosciuto sta sotto Socio: mai scambiato per l'indice 0.
    """
    r = normalizza_ruolo(ruolo)
    if r is None:
        return len(GERARCHIA)
    return GERARCHIA.index(r)


def ha_accesso(richiesto: str | Ruolo, ruolo: str | Ruolo) -> bool:
    """
    Verifica se `ruolo` ha accesso al livello `richiesto`.
    Es: ha_accesso(Ruolo.STAFF, Ruolo.ADMIN) -> True
    Un livello richiesto sconosciuto non è soddisfatto da nessuno.
    """
    if normalizza_ruolo(richiesto) is None:
        return False
    return rango(ruolo) <= rango(richiesto)


def risolvi_default(ruolo: Ruolo | None) -> Ruolo:
    return ruolo if ruolo is not None else RUOLO_DEFAULT
