from datetime import date

import pytest

from circolo_sub.calendario import anni_fa, revisione_scaduta, stagione_piscina, stato_certificato


@pytest.mark.parametrize(
    "oggi,inizio,fine",
    [
        (date(2025, 9, 1), date(2025, 9, 1), date(2026, 6, 30)),
        (date(2025, 12, 31), date(2025, 9, 1), date(2026, 6, 30)),
        (date(2026, 1, 15), date(2025, 9, 1), date(2026, 6, 30)),
        (date(2026, 6, 30), date(2025, 9, 1), date(2026, 6, 30)),
        (date(2026, 8, 31), date(2025, 9, 1), date(2026, 6, 30)),
    ],
)
def test_stagione_piscina(oggi, inizio, fine):
    assert stagione_piscina(oggi) == (inizio, fine)


OGGI = date(2025, 5, 10)


@pytest.mark.parametrize(
    "scadenza,atteso",
    [
        (None, "scaduto"),
        (date(2025, 5, 9), "scaduto"),
        (date(2025, 5, 10), "in_scadenza"),
        (date(2025, 6, 9), "in_scadenza"),
        (date(2025, 6, 10), "valido"),
    ],
)
def test_stato_certificato(scadenza, atteso):
    assert stato_certificato(scadenza, OGGI) == atteso


def test_anni_fa_handles_leap_day():
    assert anni_fa(date(2024, 2, 29), 2) == date(2022, 2, 28)
    assert anni_fa(date(2025, 3, 1), 2) == date(2023, 3, 1)


def test_revisione_scaduta():
    assert revisione_scaduta(date(2023, 5, 9), OGGI)
    assert not revisione_scaduta(date(2023, 5, 10), OGGI)
    assert not revisione_scaduta(None, OGGI)
