from datetime import date

import pytest

from circolo_sub.services import soci

from .conftest import role_id


def test_unauthenticated_requests_get_401(client):
    for path in ("/api/me", "/api/dashboard", "/api/bombole", "/api/gestione-utenti"):
        r = client.get(path)
        assert r.status_code == 401
        assert "error" in r.json()


def test_invalid_token_gets_401(client):
    r = client.get("/api/me", headers={"Authorization": "Bearer non-valido"})
    assert r.status_code == 401
    assert r.json() == {"error": "Token non valido"}


def test_login_wrong_password(client, login):
    login("Staff", email="staff@circolo.test")
    r = client.post("/api/auth/login", data={"username": "staff@circolo.test", "password": "sbagliata"})
    assert r.status_code == 401
    assert r.json() == {"error": "Credenziali non valide"}


def test_me_reports_resolved_role(client, login):
    assert client.get("/api/me", headers=login("Consiglio")).json()["ruolo"] == "Consiglio"
    assert client.get("/api/me", headers=login(None)).json()["ruolo"] == "Socio"


@pytest.mark.parametrize(
    "ruolo,path,atteso",
    [
        ("Socio", "/api/soci", 200),
        ("Socio", "/api/compressore", 403),
        ("Staff", "/api/compressore", 200),
        ("Staff", "/api/inventario", 200),
        ("Staff", "/api/bombole", 403),
        ("Consiglio", "/api/bombole", 200),
        ("Consiglio", "/api/certificati", 200),
        ("Consiglio", "/api/gestione-utenti", 403),
        ("Admin", "/api/gestione-utenti", 200),
        ("Admin", "/api/vestiario", 200),
        (None, "/api/piscina/presenze", 403),
    ],
)
def test_route_guards(client, login, ruolo, path, atteso):
    r = client.get(path, headers=login(ruolo))
    assert r.status_code == atteso
    if atteso == 403:
        assert r.json() == {"error": "Non autorizzato"}


def test_role_change_applies_to_next_request(client, login):
    admin = login("Admin")
    utente = login("Socio")
    assert client.get("/api/bombole", headers=utente).status_code == 403

    users = client.get("/api/gestione-utenti", headers=admin).json()["users"]
    uid = next(u["id"] for u in users if u["email"] == "socio@circolo.test")
    r = client.patch("/api/gestione-utenti", json={"userId": uid, "roleId": role_id("Consiglio")}, headers=admin)
    assert r.json() == {"success": True}

    # stesso token, ruolo riletto
    assert client.get("/api/bombole", headers=utente).status_code == 200


def test_gestione_utenti_flow(client, login):
    admin = login("Admin")

    r = client.post("/api/gestione-utenti", json={"email": "nuovo@circolo.test", "password": "segreta1"}, headers=admin)
    assert r.status_code == 400
    assert r.json() == {"error": "email, password e ruolo sono obbligatori"}

    r = client.post(
        "/api/gestione-utenti",
        json={"email": "nuovo@circolo.test", "password": "segreta1", "roleId": role_id("Staff")},
        headers=admin,
    )
    assert r.status_code == 200
    uid = r.json()["userId"]

    users = {u["email"]: u for u in client.get("/api/gestione-utenti", headers=admin).json()["users"]}
    assert users["nuovo@circolo.test"]["role"]["name"] == "Staff"
    assert users["nuovo@circolo.test"]["last_sign_in_at"] is None

    r = client.post(
        "/api/gestione-utenti",
        json={"email": "nuovo@circolo.test", "password": "segreta1", "roleId": role_id("Staff")},
        headers=admin,
    )
    assert r.status_code == 400
    assert r.json() == {"error": "Email già registrata."}

    r = client.request("DELETE", "/api/gestione-utenti", json={"userId": uid}, headers=admin)
    assert r.json() == {"success": True}
    emails = [u["email"] for u in client.get("/api/gestione-utenti", headers=admin).json()["users"]]
    assert "nuovo@circolo.test" not in emails


def test_gestione_utenti_forbidden_for_non_admin(client, login):
    h = login("Consiglio")
    r = client.post("/api/gestione-utenti", json={"email": "x@y.it", "password": "segreta1", "roleId": 1}, headers=h)
    assert r.status_code == 403
    assert r.json()["error"]
    r = client.request("DELETE", "/api/gestione-utenti", json={"userId": "x"}, headers=h)
    assert r.status_code == 403


def test_roles_list_for_admin(client, login):
    nomi = [r["name"] for r in client.get("/api/roles", headers=login("Admin")).json()]
    assert nomi == ["Admin", "Consiglio", "Staff", "Socio"]


def test_error_bodies(client, login):
    h = login("Admin")
    r = client.get("/api/soci/999", headers=h)
    assert r.status_code == 404
    assert r.json() == {"error": "Socio non trovato."}

    r = client.post("/api/bombole", json={"matricola": "A1"}, headers=h)
    assert r.status_code == 400
    assert r.json() == {"error": "Il volume è obbligatorio."}

    r = client.post("/api/piscina/ingressi", json={"tipo_ingresso": "singolo"}, headers=h)
    assert r.status_code == 422
    assert r.json()["error"] == "Dati non validi."


def test_soci_write_permissions(client, login):
    staff = login("Staff")
    consiglio = login("Consiglio")
    admin = login("Admin")

    assert client.post("/api/soci", json={"nome": "A", "cognome": "B"}, headers=staff).status_code == 403
    sid = client.post("/api/soci", json={"nome": "A", "cognome": "B"}, headers=consiglio).json()["id"]
    r = client.put(f"/api/soci/{sid}", json={"telefono": "333"}, headers=consiglio)
    assert r.json()["telefono"] == "333"
    assert r.json()["nome"] == "A"
    assert client.delete(f"/api/soci/{sid}", headers=consiglio).status_code == 403
    assert client.delete(f"/api/soci/{sid}", headers=admin).status_code == 200


def test_signed_url_flow(client, login):
    h = login("Consiglio")
    bid = client.post("/api/bombole", json={"matricola": "A1", "volume": "15L"}, headers=h).json()["id"]
    r = client.post(f"/api/bombole/{bid}/foto", files={"file": ("foto.png", b"PNGDATA", "image/png")}, headers=h)
    path = r.json()["foto"]

    r = client.get("/api/signed-url", params={"bucket": "Bombole", "path": path}, headers=h)
    assert r.status_code == 200
    url = r.json()["url"]

    # la URL firmata non richiede il bearer token
    r = client.get(url)
    assert r.status_code == 200
    assert r.content == b"PNGDATA"

    r = client.get(url.split("?token=")[0] + "?token=manomesso")
    assert r.status_code == 403


def test_signed_url_errors(client, login):
    h = login(None)
    assert client.get("/api/signed-url", params={"bucket": "Bombole"}, headers=h).status_code == 400
    assert client.get("/api/signed-url", params={"bucket": "Segreti", "path": "x.jpg"}, headers=h).status_code == 403
    r = client.get("/api/signed-url", params={"bucket": "Bombole", "path": "manca.jpg"}, headers=h)
    assert r.status_code == 404
    assert client.get("/api/signed-url", params={"bucket": "Bombole", "path": "x.jpg"}).status_code == 401


def test_upload_rejects_non_images(client, login):
    h = login("Consiglio")
    bid = client.post("/api/bombole", json={"matricola": "A1", "volume": "15L"}, headers=h).json()["id"]
    r = client.post(f"/api/bombole/{bid}/foto", files={"file": ("doc.pdf", b"%PDF", "application/pdf")}, headers=h)
    assert r.status_code == 400


def test_piscina_member_sees_only_own_data(client, login):
    mio = soci.crea_socio({"nome": "Mario", "cognome": "Rossi", "email": "socio@circolo.test"})
    altro = soci.crea_socio({"nome": "Luca", "cognome": "Bianchi"})
    h = login("Socio")

    assert client.get(f"/api/piscina/soci/{mio}", headers=h).status_code == 200
    assert client.get(f"/api/piscina/soci/{altro}", headers=h).status_code == 403
    assert client.get(f"/api/piscina/soci/{altro}", headers=login("Staff")).status_code == 200
    assert client.get("/api/profilo/piscina", headers=h).json()["socio_id"] == mio


def test_piscina_entry_via_api(client, login):
    h = login("Staff")
    sid = soci.crea_socio({"nome": "Mario", "cognome": "Rossi"})
    r = client.post("/api/piscina/ingressi", json={"socio_id": sid, "tipo_ingresso": "abbonamento"}, headers=h)
    assert r.status_code == 400
    assert r.json() == {"error": "Nessun pacchetto attivo disponibile per questo socio"}

    r = client.post(
        "/api/piscina/pacchetti",
        json={"socio_id": sid, "data_scadenza": date(2099, 1, 1).isoformat()},
        headers=h,
    )
    assert r.status_code == 200
    r = client.post("/api/piscina/ingressi", json={"socio_id": sid, "tipo_ingresso": "abbonamento"}, headers=h)
    assert r.status_code == 200

    pacchetti = client.get("/api/piscina/pacchetti", headers=h).json()
    assert pacchetti[0]["ingressi_residui"] == 4
    assert client.get("/api/piscina/presenze", headers=h).json()["totale_presenti"] == 1


def test_noleggio_via_api(client, login):
    consiglio = login("Consiglio")
    staff = login("Staff")
    sid = soci.crea_socio({"nome": "Mario", "cognome": "Rossi"})
    art = client.post("/api/inventario", json={"nome": "Jacket", "noleggiabile": True}, headers=consiglio).json()["id"]
    assert client.post("/api/inventario", json={"nome": "X"}, headers=staff).status_code == 403

    payload = {
        "socio_id": sid,
        "data_inizio": "2025-07-01",
        "data_fine_prevista": "2025-07-08",
        "righe": [{"articolo_id": art, "quantita": 1}],
    }
    nid = client.post("/api/noleggi", json=payload, headers=staff).json()["id"]
    r = client.post(f"/api/noleggi/{nid}/restituzione", json={"data_restituzione": "2025-07-05"}, headers=staff)
    assert r.json()["stato"] == "Completato"
    assert client.delete(f"/api/noleggi/{nid}", headers=staff).status_code == 403
    assert client.delete(f"/api/noleggi/{nid}", headers=consiglio).status_code == 200


def test_certificato_upload_via_api(client, login):
    h = login("Consiglio")
    sid = soci.crea_socio({"nome": "Mario", "cognome": "Rossi"})
    r = client.post(
        "/api/certificati",
        data={"socio_id": str(sid), "data_visita": "2025-01-10", "data_scadenza": "2026-01-10"},
        files={"file": ("visita.pdf", b"%PDF-1.4", "application/pdf")},
        headers=h,
    )
    assert r.status_code == 200, r.text
    cert = client.get(f"/api/certificati/socio/{sid}", headers=h).json()[0]
    assert cert["pdf"].endswith(".pdf")
    assert cert["data_scadenza"] == "2026-01-10"


def test_revisione_via_api(client, login):
    h = login("Consiglio")
    bid = client.post(
        "/api/bombole", json={"matricola": "A1", "volume": "15L", "ultima_revisione": "2020-01-01"}, headers=h
    ).json()["id"]
    assert [b["id"] for b in client.get("/api/revisioni/candidate", headers=h).json()] == [bid]

    r = client.post(
        "/api/revisioni",
        json={
            "data_bombole_pronte": "2025-03-01",
            "data_collaudo": "2025-03-10",
            "centro_revisione": "Centro",
            "bombole_ids": [bid],
        },
        headers=h,
    )
    rid = r.json()["id"]
    client.patch(f"/api/revisioni/{rid}/bombole/{bid}", json={"esito": "OK"}, headers=h)
    r = client.patch(f"/api/revisioni/{rid}", json={"stato": "Tornate"}, headers=h)
    assert r.json()["stato"] == "Tornate"
    assert client.get(f"/api/bombole/{bid}", headers=h).json()["ultima_revisione"] == "2025-03-10"


def test_profilo_and_password_change(client, login):
    soci.crea_socio({"nome": "Mario", "cognome": "Rossi", "email": "socio@circolo.test"})
    h = login("Socio")
    prof = client.get("/api/profilo", headers=h).json()
    assert prof["socio"]["cognome"] == "Rossi"
    assert prof["ruolo"] == "Socio"

    assert client.post("/api/profilo/password", json={"password": "123"}, headers=h).status_code == 400
    assert client.post("/api/profilo/password", json={"password": "nuovapass"}, headers=h).status_code == 200
    r = client.post("/api/auth/login", data={"username": "socio@circolo.test", "password": "nuovapass"})
    assert r.status_code == 200

    r = client.post("/api/profilo/avatar", files={"file": ("me.jpg", b"JPEG", "image/jpeg")}, headers=h)
    assert r.json()["avatar"].startswith("avatar_")


def test_esito_update_errors_are_reported_as_error_body(client, login):
    h = login("Consiglio")
    bid = client.post("/api/bombole", json={"matricola": "A1", "volume": "15L"}, headers=h).json()["id"]
    rid = client.post(
        "/api/revisioni",
        json={
            "data_bombole_pronte": "2025-03-01",
            "data_collaudo": "2025-03-10",
            "centro_revisione": "Centro",
            "bombole_ids": [bid],
        },
        headers=h,
    ).json()["id"]
    client.delete(f"/api/revisioni/{rid}", headers=h)

    r = client.patch(f"/api/revisioni/{rid}/bombole/{bid}", json={"esito": "OK"}, headers=h)
    assert r.status_code == 404
    assert r.json() == {"error": "Bombola non presente nella revisione."}

    r = client.patch(f"/api/revisioni/{rid}/bombole/{bid}", json={"esito": "OK"})
    assert r.status_code == 401
    assert "error" in r.json()
