from __future__ import annotations

from datetime import date, timedelta

# Stagione piscina: dal 1 settembre al 30 giugno dell'anno successivo
MESE_INIZIO_STAGIONE = 9
GIORNI_PREAVVISO_CERTIFICATO = 30
ANNI_VALIDITA_REVISIONE = 2


def stagione_piscina(oggi: date) -> tuple[date, date]:
    """Da settembre la stagione è iniziata quest'anno, altrimenti l'anno scorso."""
    anno_inizio = oggi.year if oggi.month >= MESE_INIZIO_STAGIONE else oggi.year - 1
    return date(anno_inizio, MESE_INIZIO_STAGIONE, 1), date(anno_inizio + 1, 6, 30)


def anni_fa(oggi: date, anni: int) -> date:
    try:
        return oggi.replace(year=oggi.year - anni)
    except ValueError:
        # 29 febbraio in un anno non bisestile
        return oggi.replace(year=oggi.year - anni, day=28)


def stato_certificato(data_scadenza: date | None, oggi: date) -> str:
    """'scaduto' | 'in_scadenza' (entro 30 giorni) | 'valido'"""
    if data_scadenza is None or data_scadenza < oggi:
        return "scaduto"
    if data_scadenza <= oggi + timedelta(days=GIORNI_PREAVVISO_CERTIFICATO):
        return "in_scadenza"
    return "valido"


def revisione_scaduta(ultima_revisione: date | None, oggi: date, anni: int = ANNI_VALIDITA_REVISIONE) -> bool:
    """Ultimo collaudo più vecchio di `anni` anni. Senza data non si può dire."""
    if ultima_revisione is None:
        return False
    return ultima_revisione < anni_fa(oggi, anni)
