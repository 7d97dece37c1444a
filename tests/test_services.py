from datetime import date, datetime

import pytest

from circolo_sub import storage
from circolo_sub.config import STORAGE_DIR
from circolo_sub.errors import NonTrovato
from circolo_sub.services import (
    bombole,
    certificati,
    compressore,
    inventario,
    noleggi,
    piscina,
    revisioni,
    soci,
    vestiario,
)


def _socio(nome="Mario", cognome="Rossi", **extra) -> int:
    return soci.crea_socio({"nome": nome, "cognome": cognome, **extra})


# =========================
# Soci / dashboard
# =========================
def test_soci_crud_and_search():
    sid = _socio(email=" Mario.Rossi@Mail.IT ", codice_fiscale="rssmra80a01h501u")
    _socio("Luca", "Bianchi", attivo=False)

    p = soci.get_socio(sid)
    assert p["email"] == "mario.rossi@mail.it"
    assert p["codice_fiscale"] == "RSSMRA80A01H501U"
    assert p["nazione"] == "Italia"

    assert [s["cognome"] for s in soci.lista_soci()] == ["Bianchi", "Rossi"]
    assert [s["id"] for s in soci.lista_soci(cerca="mario ro")] == [sid]
    assert [s["cognome"] for s in soci.lista_soci(attivo=True)] == ["Rossi"]

    assert soci.aggiorna_socio(sid, {"telefono": "333"})["telefono"] == "333"
    soci.elimina_socio(sid)
    with pytest.raises(NonTrovato):
        soci.get_socio(sid)


def test_socio_requires_nome_cognome():
    with pytest.raises(ValueError):
        soci.crea_socio({"nome": "Solo"})


def test_dashboard():
    a = _socio(addetto_ricarica=True, assicurazione=True)
    _socio("Luca", "Bianchi")
    compressore.crea_ricarica({"data": date(2025, 1, 1), "mono": 2, "bibo": 1, "lettura_finale": 100.5, "addetto_id": a})
    compressore.crea_ricarica({"data": date(2025, 1, 8), "mono": 1, "lettura_finale": 101.0})

    d = soci.dashboard()
    assert d["soci_totali"] == 2
    assert d["soci_attivi"] == 2
    assert d["ultima_lettura"] == 101.0
    assert [r["bombole"] for r in d["ultime_ricariche"]] == [1, 3]
    assert d["ultime_ricariche"][1]["addetto"] == "Mario Rossi"
    assert d["senza_assicurazione"] == 1
    assert d["soci_senza_assicurazione"][0]["cognome"] == "Bianchi"


def test_profilo_by_email():
    sid = _socio(email="mario@circolo.test", addetto_ricarica=True)
    compressore.crea_ricarica({"data": date(2025, 1, 1), "mono": 1, "addetto_id": sid})
    p = soci.profilo("Mario@Circolo.test")
    assert p["socio"]["id"] == sid
    assert p["ricariche_effettuate"] == 1
    assert soci.profilo("altro@circolo.test")["socio"] is None


# =========================
# Compressore
# =========================
def test_compressore_totals_and_operators():
    a = _socio(addetto_ricarica=True)
    _socio("Luca", "Bianchi")
    compressore.crea_ricarica({"data": date(2025, 2, 1), "mono": 3, "bibo": 2, "addetto_id": a})
    compressore.crea_ricarica({"data": date(2025, 2, 2), "mono": 1})

    out = compressore.lista_ricariche()
    assert out["totale_bombole"] == 6
    assert out["ricariche"][0]["data"] == "2025-02-02"
    assert [x["id"] for x in compressore.lista_addetti()] == [a]


def test_compressore_rejects_non_operator():
    b = _socio("Luca", "Bianchi")
    with pytest.raises(ValueError, match="Addetto"):
        compressore.crea_ricarica({"data": date(2025, 2, 1), "mono": 1, "addetto_id": b})


# =========================
# Bombole
# =========================
def test_bombole_filters_and_stats():
    owner = _socio()
    bombole.crea_bombola({"matricola": "A1", "volume": "15L", "proprietario_id": owner, "ultima_revisione": date(2020, 1, 1)})
    bombole.crea_bombola({"matricola": "B2", "volume": "12L", "ultima_revisione": date(2025, 1, 1)})
    bombole.crea_bombola({"matricola": "C3", "volume": "10L", "dismessa": True, "ultima_revisione": date(2019, 1, 1)})

    out = bombole.lista_bombole("attive", oggi=date(2025, 6, 1))
    assert [b["matricola"] for b in out["bombole"]] == ["A1", "B2"]
    assert out["stats"] == {"totale": 3, "attive": 2, "dismesse": 1, "da_revisionare": 1}

    assert [b["matricola"] for b in bombole.lista_bombole("dismesse")["bombole"]] == ["C3"]
    assert [b["matricola"] for b in bombole.lista_bombole("tutte", cerca="rossi")["bombole"]] == ["A1"]
    with pytest.raises(ValueError):
        bombole.lista_bombole("rotte")


@pytest.mark.parametrize("dati", [{"volume": "15L"}, {"matricola": "X"}])
def test_bombola_required_fields(dati):
    with pytest.raises(ValueError):
        bombole.crea_bombola(dati)


def test_bombola_photo_replaced_and_removed():
    bid = bombole.crea_bombola({"matricola": "A1", "volume": "15L"})
    prima = bombole.carica_foto(bid, "a.jpg", "image/jpeg", b"1")
    dopo = bombole.carica_foto(bid, "b.png", "image/png", b"2")
    assert prima != dopo
    assert not storage.esiste("Bombole", prima)
    bombole.elimina_bombola(bid)
    assert not storage.esiste("Bombole", dopo)


# =========================
# Revisioni
# =========================
def _header(**extra):
    return {
        "data_bombole_pronte": date(2024, 3, 1),
        "data_collaudo": date(2024, 3, 10),
        "centro_revisione": "Centro Collaudi",
        **extra,
    }


def test_revisione_candidates():
    vecchia = bombole.crea_bombola({"matricola": "A1", "volume": "15L", "ultima_revisione": date(2021, 1, 1)})
    recente = bombole.crea_bombola({"matricola": "B2", "volume": "15L", "ultima_revisione": date(2024, 12, 1)})
    mai = bombole.crea_bombola({"matricola": "C3", "volume": "15L"})
    bombole.crea_bombola({"matricola": "D4", "volume": "15L", "dismessa": True})

    oggi = date(2025, 6, 1)
    assert {b["id"] for b in revisioni.bombole_candidate(2, oggi)} == {vecchia, mai}
    assert {b["id"] for b in revisioni.bombole_candidate(None, oggi)} == {vecchia, recente, mai}


def test_revisione_requires_cylinders():
    with pytest.raises(ValueError, match="almeno una"):
        revisioni.crea_revisione(_header(), [])


def test_revisione_with_missing_cylinder_is_not_created():
    b1 = bombole.crea_bombola({"matricola": "A1", "volume": "15L"})
    with pytest.raises(ValueError):
        revisioni.crea_revisione(_header(), [b1, 9999])
    assert revisioni.lista_revisioni()["stats"]["totale"] == 0


def test_revisione_lifecycle():
    b1 = bombole.crea_bombola({"matricola": "A1", "volume": "15L", "ultima_revisione": date(2020, 1, 1)})
    b2 = bombole.crea_bombola({"matricola": "B2", "volume": "15L", "ultima_revisione": date(2020, 1, 1)})
    rid = revisioni.crea_revisione(_header(), [b1, b2, b1])

    r = revisioni.get_revisione(rid)
    assert r["stato"] == "Da preparare"
    assert r["n_bombole"] == 2
    assert {d["esito"] for d in r["dettagli"]} == {"In Attesa"}

    revisioni.aggiorna_dettaglio(rid, b1, esito="OK", pagato=True)
    revisioni.aggiorna_dettaglio(rid, b2, esito="Bocciata")
    with pytest.raises(ValueError):
        revisioni.aggiorna_dettaglio(rid, b2, esito="Forse")

    out = revisioni.aggiorna_revisione(rid, {"stato": "Tornate"}, oggi=date(2024, 3, 15))
    assert out["stato"] == "Tornate"
    assert out["data_revisione_terminata"] == "2024-03-15"
    assert bombole.get_bombola(b1)["ultima_revisione"] == "2024-03-10"
    assert bombole.get_bombola(b2)["ultima_revisione"] == "2020-01-01"

    stats = revisioni.lista_revisioni()["stats"]
    assert stats["Tornate"] == 1 and stats["totale"] == 1


def test_esito_ok_after_closing_updates_cylinder():
    b1 = bombole.crea_bombola({"matricola": "A1", "volume": "15L"})
    rid = revisioni.crea_revisione(_header(), [b1])
    revisioni.aggiorna_revisione(rid, {"stato": "Tornate"}, oggi=date(2024, 3, 15))
    assert bombole.get_bombola(b1)["ultima_revisione"] is None

    revisioni.aggiorna_dettaglio(rid, b1, esito="OK")
    assert bombole.get_bombola(b1)["ultima_revisione"] == "2024-03-10"


def test_esito_ok_on_open_session_waits_for_closing():
    b1 = bombole.crea_bombola({"matricola": "A1", "volume": "15L"})
    rid = revisioni.crea_revisione(_header(), [b1])
    revisioni.aggiorna_dettaglio(rid, b1, esito="OK")
    assert bombole.get_bombola(b1)["ultima_revisione"] is None


def test_photo_upload_for_missing_row_leaves_no_file():
    with pytest.raises(NonTrovato):
        vestiario.carica_foto(9999, "a.png", "image/png", b"x")
    assert not any((STORAGE_DIR / "Vestiario").glob("*"))


def test_revisione_invalid_state():
    b1 = bombole.crea_bombola({"matricola": "A1", "volume": "15L"})
    rid = revisioni.crea_revisione(_header(), [b1])
    with pytest.raises(ValueError):
        revisioni.aggiorna_revisione(rid, {"stato": "Perse"})


def test_revisione_delete_cascades_and_removes_certificate():
    b1 = bombole.crea_bombola({"matricola": "A1", "volume": "15L"})
    rid = revisioni.crea_revisione(_header(), [b1])
    pdf = revisioni.carica_certificato(rid, "cert.pdf", "application/pdf", b"%PDF")
    revisioni.elimina_revisione(rid)
    assert not storage.esiste("Revisioni", pdf)
    with pytest.raises(NonTrovato):
        revisioni.get_revisione(rid)
    # la bombola resta
    assert bombole.get_bombola(b1)["matricola"] == "A1"


# =========================
# Certificati
# =========================
def test_certificati_latest_per_member_and_stats():
    a = _socio()
    b = _socio("Luca", "Bianchi")
    c = _socio("Anna", "Verdi")
    certificati.crea_certificato({"socio_id": a, "data_visita": date(2023, 1, 1), "data_scadenza": date(2024, 1, 1)})
    certificati.crea_certificato({"socio_id": a, "data_visita": date(2025, 1, 1), "data_scadenza": date(2026, 1, 1)})
    certificati.crea_certificato({"socio_id": b, "data_visita": date(2025, 1, 1), "data_scadenza": date(2025, 6, 20)})
    certificati.crea_certificato({"socio_id": c, "data_visita": date(2024, 1, 1)})

    out = certificati.lista_certificati(oggi=date(2025, 6, 1))
    per_socio = {x["socio"]: x for x in out["certificati"]}
    assert per_socio["Mario Rossi"]["stato"] == "valido"
    assert per_socio["Mario Rossi"]["data_visita"] == "2025-01-01"
    assert per_socio["Luca Bianchi"]["stato"] == "in_scadenza"
    assert per_socio["Anna Verdi"]["stato"] == "scaduto"
    assert out["stats"] == {"scaduto": 1, "in_scadenza": 1, "valido": 1, "totale": 3}

    solo = certificati.lista_certificati(stato="scaduto", oggi=date(2025, 6, 1))
    assert [x["socio"] for x in solo["certificati"]] == ["Anna Verdi"]
    assert solo["stats"]["totale"] == 3
    assert [x["socio"] for x in certificati.lista_certificati(cerca="bian")["certificati"]] == ["Luca Bianchi"]


def test_certificato_with_pdf_and_delete():
    a = _socio()
    cid = certificati.crea_certificato(
        {"socio_id": a, "data_visita": date(2025, 1, 1)}, "visita.pdf", "application/pdf", b"%PDF"
    )
    pdf = certificati.certificati_socio(a)[0]["pdf"]
    assert storage.esiste("Certificati", pdf)
    certificati.elimina_certificato(cid)
    assert not storage.esiste("Certificati", pdf)


def test_certificato_validation():
    a = _socio()
    with pytest.raises(ValueError):
        certificati.crea_certificato({"socio_id": a})
    with pytest.raises(ValueError):
        certificati.crea_certificato({"socio_id": a, "data_visita": date(2025, 1, 1)}, "x.png", "image/png", b"x")
    with pytest.raises(NonTrovato):
        certificati.crea_certificato({"socio_id": 999, "data_visita": date(2025, 1, 1)})


# =========================
# Inventario e noleggi
# =========================
def test_inventario_stats_and_filters():
    inventario.crea_articolo({"nome": "Jacket S", "categoria": "GAV", "valore_attuale": 15000, "noleggiabile": True})
    inventario.crea_articolo({"nome": "Erogatore", "categoria": "Erogatori", "valore_attuale": 20000, "posizione": "Armadio 2"})
    inventario.crea_articolo({"nome": "Muta rotta", "categoria": "Mute", "valore_attuale": 5000, "distrutto": True})

    out = inventario.lista_articoli()
    assert out["stats"] == {"totale": 3, "attivi": 2, "distrutti": 1, "valore_totale": 35000}
    assert out["categorie"] == ["Erogatori", "GAV", "Mute"]
    assert [a["nome"] for a in inventario.lista_articoli(cerca="armadio")["articoli"]] == ["Erogatore"]
    assert [a["nome"] for a in inventario.lista_articoli(solo_noleggiabili=True)["articoli"]] == ["Jacket S"]
    assert [a["nome"] for a in inventario.lista_articoli(categoria="Mute")["articoli"]] == ["Muta rotta"]


def test_noleggio_lifecycle():
    sid = _socio()
    art = inventario.crea_articolo({"nome": "Jacket S", "noleggiabile": True})
    nid = noleggi.crea_noleggio(
        {"socio_id": sid, "data_inizio": date(2025, 7, 1), "data_fine_prevista": date(2025, 7, 8)},
        [{"articolo_id": art, "quantita": 2}],
    )
    n = noleggi.get_noleggio(nid)
    assert n["stato"] == "Attivo"
    assert n["righe"] == [{"id": n["righe"][0]["id"], "articolo_id": art, "articolo": "Jacket S", "quantita": 2}]

    with pytest.raises(ValueError):
        noleggi.restituisci(nid, None)
    out = noleggi.restituisci(nid, date(2025, 7, 7))
    assert out["stato"] == "Completato"
    assert out["data_restituzione"] == "2025-07-07"
    with pytest.raises(ValueError):
        noleggi.restituisci(nid, date(2025, 7, 8))

    assert [x["id"] for x in noleggi.lista_noleggi(stato="Completato")] == [nid]
    assert noleggi.lista_noleggi(stato="Attivo") == []
    assert [x["id"] for x in noleggi.lista_noleggi(cerca="rossi")] == [nid]

    # articolo referenziato da un noleggio: non eliminabile
    with pytest.raises(ValueError):
        inventario.elimina_articolo(art)
    noleggi.elimina_noleggio(nid)
    inventario.elimina_articolo(art)


@pytest.mark.parametrize(
    "righe",
    [
        [],
        [{"articolo_id": 9999}],
        [{"articolo_id": "OK"}, {"articolo_id": "NON_NOLEGGIABILE"}],
        [{"articolo_id": "OK", "quantita": 0}],
    ],
)
def test_noleggio_invalid_lines_create_nothing(righe):
    sid = _socio()
    ok = inventario.crea_articolo({"nome": "Jacket", "noleggiabile": True})
    no = inventario.crea_articolo({"nome": "Compressore", "noleggiabile": False})
    ids = {"OK": ok, "NON_NOLEGGIABILE": no}
    righe = [{**r, "articolo_id": ids.get(r["articolo_id"], r["articolo_id"])} for r in righe]

    with pytest.raises(ValueError):
        noleggi.crea_noleggio(
            {"socio_id": sid, "data_inizio": date(2025, 7, 1), "data_fine_prevista": date(2025, 7, 8)}, righe
        )
    assert noleggi.lista_noleggi() == []


# =========================
# Piscina
# =========================
ADESSO = datetime(2025, 10, 1, 18, 30)


def test_ingresso_abbonamento_consumes_package():
    sid = _socio()
    pid = piscina.crea_pacchetto(sid, date(2026, 6, 30), data_acquisto=date(2025, 9, 15), ingressi_totali=2)

    piscina.registra_ingresso(sid, "abbonamento", adesso=ADESSO)
    piscina.registra_ingresso(sid, "abbonamento", adesso=ADESSO)
    pacchetto = piscina.lista_pacchetti(socio_id=sid)[0]
    assert pacchetto["id"] == pid
    assert pacchetto["ingressi_usati"] == 2
    assert pacchetto["ingressi_residui"] == 0

    with pytest.raises(ValueError, match="Nessun pacchetto"):
        piscina.registra_ingresso(sid, "abbonamento", adesso=ADESSO)
    assert piscina.statistiche_giorno(ADESSO.date())["ingressi_abbonamento"] == 2


def test_ingresso_abbonamento_ignores_expired_or_inactive_packages():
    sid = _socio()
    piscina.crea_pacchetto(sid, date(2025, 9, 30), data_acquisto=date(2025, 9, 1))
    pid = piscina.crea_pacchetto(sid, date(2026, 6, 30), data_acquisto=date(2025, 9, 1))
    piscina.disattiva_pacchetto(pid)
    with pytest.raises(ValueError):
        piscina.registra_ingresso(sid, "abbonamento", adesso=ADESSO)
    assert piscina.statistiche_giorno(ADESSO.date())["totale_presenti"] == 0


def test_ingresso_singolo():
    sid = _socio()
    with pytest.raises(ValueError, match="importo"):
        piscina.registra_ingresso(sid, "singolo", adesso=ADESSO)
    piscina.registra_ingresso(sid, "singolo", importo=8.5, adesso=ADESSO)

    s = piscina.statistiche_giorno(ADESSO.date())
    assert s["totale_presenti"] == 1
    assert s["ingressi_singoli"] == 1
    assert s["introito_singoli"] == 8.5
    assert s["presenze"][0]["pagato"] is True
    assert s["presenze"][0]["orario_ingresso"] == "18:30:00"


def test_ingresso_tipo_non_valido():
    sid = _socio()
    with pytest.raises(ValueError):
        piscina.registra_ingresso(sid, "gratis", adesso=ADESSO)


def test_elimina_presenza_restores_entry():
    sid = _socio()
    piscina.crea_pacchetto(sid, date(2026, 6, 30), data_acquisto=date(2025, 9, 1))
    pres = piscina.registra_ingresso(sid, "abbonamento", adesso=ADESSO)
    piscina.elimina_presenza(pres)
    assert piscina.lista_pacchetti(socio_id=sid)[0]["ingressi_usati"] == 0


def test_pacchetto_validation():
    sid = _socio()
    with pytest.raises(ValueError, match="scadenza"):
        piscina.crea_pacchetto(sid, None)
    with pytest.raises(ValueError):
        piscina.crea_pacchetto(sid, date(2025, 1, 1), data_acquisto=date(2025, 2, 1))


def test_season_summary_and_member_data():
    sid = _socio()
    altro = _socio("Luca", "Bianchi")
    piscina.registra_ingresso(sid, "singolo", importo=8, adesso=datetime(2025, 8, 30, 10, 0))  # stagione precedente
    piscina.registra_ingresso(sid, "singolo", importo=8, adesso=datetime(2025, 9, 2, 10, 0))
    piscina.registra_ingresso(altro, "singolo", importo=8, adesso=datetime(2025, 10, 2, 10, 0))

    r = piscina.riepilogo_stagione(oggi=date(2025, 10, 3))
    assert (r["inizio"], r["fine"]) == ("2025-09-01", "2026-06-30")
    assert r["totale_ingressi"] == 2
    assert r["soci_distinti"] == 2
    assert r["per_mese"] == {"2025-09": 1, "2025-10": 1}

    d = piscina.dati_socio(sid, oggi=date(2025, 9, 2))
    assert len(d["presenze"]) == 1
    assert d["gia_entrato_oggi"] is True


# =========================
# Vestiario
# =========================
def test_vestiario_crud():
    cid = vestiario.crea_capo({"descrizione": "T-shirt", "taglia": "M", "qta": 10, "prezzo": 15.0})
    assert vestiario.lista_vestiario()[0]["attivo"] is True
    vestiario.aggiorna_capo(cid, {"attivo": False})
    assert vestiario.lista_vestiario(solo_attivi=True) == []
    with pytest.raises(ValueError):
        vestiario.crea_capo({"descrizione": " "})
    with pytest.raises(ValueError):
        vestiario.aggiorna_capo(cid, {"qta": -1})
    vestiario.elimina_capo(cid)
    assert vestiario.lista_vestiario() == []
