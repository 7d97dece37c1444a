from __future__ import annotations

import base64
import json
import os
from datetime import date, datetime, timezone

import requests
import streamlit as st

from circolo_sub.roles import Ruolo, ha_accesso

st.set_page_config(page_title="Circolo Sub", layout="wide")

API_BASE = os.getenv("API_BASE", "http://127.0.0.1:8000")

# (pagina, ruolo minimo); None = qualsiasi utente autenticato
PAGINE: list[tuple[str, Ruolo | None]] = [
    ("Dashboard", None),
    ("Soci", None),
    ("Compressore", Ruolo.STAFF),
    ("Bombole", Ruolo.CONSIGLIO),
    ("Revisioni Bombole", Ruolo.CONSIGLIO),
    ("Certificati", Ruolo.CONSIGLIO),
    ("Inventario", Ruolo.STAFF),
    ("Noleggi", Ruolo.STAFF),
    ("Piscina", Ruolo.STAFF),
    ("Vestiario", Ruolo.CONSIGLIO),
    ("Gestione utenti", Ruolo.ADMIN),
    ("Profilo", None),
]


# JWT helpers (solo per UI, senza verifica firma)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    try:
        parts = token.split(".")
        if len(parts) != 3:
            return {}
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
        return payload if isinstance(payload, dict) else {}
    except (ValueError, UnicodeDecodeError):
        return {}


def jwt_is_expired(token: str) -> bool:
    exp = jwt_payload(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return False

    now = int(datetime.now(tz=timezone.utc).timestamp())
    return now >= (exp_int - 5)


# HTTP client (con JWT)

class ApiError(Exception):
    pass


def _headers() -> dict:
    token = st.session_state.get("token")
    return {"Authorization": f"Bearer {token}"} if token else {}


def _risposta(r: requests.Response):
    if r.status_code == 401:
        raise PermissionError("401 Unauthorized (token non valido/scaduto oppure backend riavviato).")
    if not r.ok:
        try:
            msg = r.json().get("error")
        except ValueError:
            msg = None
        raise ApiError(msg or f"Errore {r.status_code}")
    return r.json()


def api_get(path: str, params: dict | None = None):
    return _risposta(requests.get(f"{API_BASE}{path}", headers=_headers(), params=params, timeout=10))


def api_send(method: str, path: str, payload: dict | None = None, files: dict | None = None, data: dict | None = None):
    r = requests.request(
        method, f"{API_BASE}{path}", headers=_headers(), json=payload, files=files, data=data, timeout=30
    )
    return _risposta(r)


def api_login(email: str, password: str) -> str:
    # OAuth2PasswordRequestForm => x-www-form-urlencoded, username = email
    r = requests.post(
        f"{API_BASE}/api/auth/login",
        data={"username": email, "password": password},
        timeout=10,
    )
    r.raise_for_status()
    return r.json()["access_token"]


def signed_url(bucket: str, path: str | None) -> str | None:
    if not path:
        return None
    try:
        return API_BASE + api_get("/api/signed-url", {"bucket": bucket, "path": path})["url"]
    except (ApiError, requests.RequestException):
        return None


def do_logout() -> None:
    for k in ("token", "me", "auth_error", "pagina"):
        st.session_state.pop(k, None)
    st.rerun()


def esegui(azione, messaggio: str = "Operazione completata.") -> bool:
    """Esegue una chiamata API mostrando esito/errore; True se riuscita."""
    try:
        azione()
    except PermissionError as e:
        st.session_state["auth_error"] = str(e)
        st.error("Sessione non valida. Premi Logout e rifai login.")
        return False
    except (ApiError, requests.RequestException) as e:
        st.error(str(e))
        return False
    st.success(messaggio)
    return True


def ruolo_corrente() -> Ruolo:
    return Ruolo(st.session_state["me"]["ruolo"])


def pagina_protetta(richiesto: Ruolo | None) -> None:
    """Guardia unica per le pagine: senza il ruolo richiesto si torna alla Dashboard."""
    if richiesto is None or ha_accesso(richiesto, ruolo_corrente()):
        return
    st.session_state["pagina"] = "Dashboard"
    st.rerun()


def euro(cents: int | None) -> str:
    return f"€ {(cents or 0) / 100:,.2f}"


# Sidebar login + navigazione

with st.sidebar:
    st.header("Circolo Sub")

    token = st.session_state.get("token")
    if not token or jwt_is_expired(token):
        email = st.text_input("Email", key="login_user")
        password = st.text_input("Password", type="password", key="login_pass")

        if st.button("Login", key="login_btn"):
            try:
                st.session_state["token"] = api_login(email.strip().lower(), password)
                st.session_state["me"] = api_get("/api/me")
                st.session_state.pop("auth_error", None)
                st.rerun()
            except requests.HTTPError:
                st.error("Credenziali non valide.")
            except (requests.RequestException, PermissionError, ApiError) as e:
                st.error(str(e))
        st.stop()

    if "me" not in st.session_state:
        try:
            st.session_state["me"] = api_get("/api/me")
        except (PermissionError, ApiError, requests.RequestException) as e:
            st.error(str(e))
            if st.button("Logout", key="logout_err"):
                do_logout()
            st.stop()

    me = st.session_state["me"]
    st.write(f"**{me['email']}**")
    st.caption(f"Ruolo: {me['ruolo']}")

    visibili = [nome for nome, minimo in PAGINE if minimo is None or ha_accesso(minimo, Ruolo(me["ruolo"]))]
    corrente = st.session_state.get("pagina", "Dashboard")
    pagina = st.radio("Menu", visibili, index=visibili.index(corrente) if corrente in visibili else 0)
    st.session_state["pagina"] = pagina

    if st.session_state.get("auth_error"):
        st.error(st.session_state["auth_error"])
    if st.button("Logout", key="logout_btn"):
        do_logout()

    st.divider()
    st.caption(f"API: {API_BASE}")


pagina_protetta(dict(PAGINE)[pagina])
ruolo = ruolo_corrente()
st.title(pagina)


# Dashboard

if pagina == "Dashboard":
    d = api_get("/api/dashboard")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Soci totali", d["soci_totali"])
    c2.metric("Soci attivi", d["soci_attivi"])
    c3.metric("Ultima lettura compressore", d["ultima_lettura"] if d["ultima_lettura"] is not None else "-")
    c4.metric("Attivi senza assicurazione", d["senza_assicurazione"])

    left, right = st.columns(2)
    with left:
        st.subheader("Ultime ricariche")
        for r in d["ultime_ricariche"] or []:
            st.write(f"- {r['data'] or '-'} | {r['bombole']} bombole | {r['addetto'] or '-'} | lettura {r['lettura_finale']}")
    with right:
        st.subheader("Senza assicurazione")
        for p in d["soci_senza_assicurazione"]:
            st.write(f"- {p['cognome']} {p['nome']}")


# Soci

elif pagina == "Soci":
    c1, c2 = st.columns([3, 1])
    cerca = c1.text_input("Cerca (nome, email)")
    solo_attivi = c2.checkbox("Solo attivi", value=False)
    elenco = api_get("/api/soci", {"q": cerca or None, "attivo": True if solo_attivi else None})
    st.dataframe(
        [{k: s[k] for k in ("id", "cognome", "nome", "email", "telefono", "tipo_socio", "brevetto", "attivo")} for s in elenco],
        use_container_width=True,
    )

    if ha_accesso(Ruolo.CONSIGLIO, ruolo):
        brevetti = api_get("/api/brevetti")
        tipi = api_get("/api/tipi-socio")
        with st.expander("Nuovo socio"):
            with st.form("nuovo_socio"):
                a, b = st.columns(2)
                nome = a.text_input("Nome")
                cognome = b.text_input("Cognome")
                email = a.text_input("Email")
                telefono = b.text_input("Telefono")
                brev = a.selectbox("Brevetto", [None] + brevetti, format_func=lambda x: x["nome"] if x else "-")
                tipo = b.selectbox("Tipo socio", [None] + tipi, format_func=lambda x: x["descrizione"] if x else "-")
                cf = a.text_input("Codice fiscale")
                nascita = b.date_input("Data di nascita", value=None, min_value=date(1920, 1, 1))
                addetto = a.checkbox("Addetto ricarica")
                assic = b.checkbox("Assicurazione")
                if st.form_submit_button("Salva"):
                    payload = {
                        "nome": nome, "cognome": cognome, "email": email, "telefono": telefono,
                        "brevetto_id": brev["id"] if brev else None,
                        "tipo_socio_id": tipo["id"] if tipo else None,
                        "codice_fiscale": cf,
                        "data_nascita": nascita.isoformat() if nascita else None,
                        "addetto_ricarica": addetto, "assicurazione": assic,
                    }
                    if esegui(lambda: api_send("POST", "/api/soci", payload), "Socio creato."):
                        st.rerun()

        if elenco:
            with st.expander("Modifica / elimina"):
                sel = st.selectbox("Socio", elenco, format_func=lambda s: f"{s['cognome']} {s['nome']}")
                a, b = st.columns(2)
                attivo = a.checkbox("Attivo", value=sel["attivo"], key=f"att_{sel['id']}")
                assic = b.checkbox("Assicurazione", value=sel["assicurazione"], key=f"ass_{sel['id']}")
                telefono = a.text_input("Telefono", value=sel["telefono"] or "", key=f"tel_{sel['id']}")
                if st.button("Aggiorna"):
                    payload = {"attivo": attivo, "assicurazione": assic, "telefono": telefono}
                    if esegui(lambda: api_send("PUT", f"/api/soci/{sel['id']}", payload), "Socio aggiornato."):
                        st.rerun()
                if ha_accesso(Ruolo.ADMIN, ruolo) and st.button("Elimina socio", type="primary"):
                    if esegui(lambda: api_send("DELETE", f"/api/soci/{sel['id']}"), "Socio eliminato."):
                        st.rerun()


# Compressore

elif pagina == "Compressore":
    dati = api_get("/api/compressore")
    c1, c2 = st.columns(2)
    c1.metric("Bombole caricate (ultime 100 ricariche)", dati["totale_bombole"])
    c2.metric("Ultima lettura", dati["ultima_lettura"] if dati["ultima_lettura"] is not None else "-")

    addetti = api_get("/api/compressore/addetti")
    with st.form("nuova_ricarica"):
        a, b, c = st.columns(3)
        giorno = a.date_input("Data", value=date.today())
        mono = b.number_input("Mono", min_value=0, step=1)
        bibo = c.number_input("Bibo", min_value=0, step=1)
        lettura = a.number_input("Lettura finale (ore)", min_value=0.0, step=0.1)
        addetto = b.selectbox("Addetto", [None] + addetti, format_func=lambda x: f"{x['cognome']} {x['nome']}" if x else "-")
        note = c.text_input("Note")
        if st.form_submit_button("Registra ricarica"):
            payload = {
                "data": giorno.isoformat(), "mono": int(mono), "bibo": int(bibo), "lettura_finale": lettura,
                "addetto_id": addetto["id"] if addetto else None, "note": note,
            }
            if esegui(lambda: api_send("POST", "/api/compressore", payload), "Ricarica registrata."):
                st.rerun()

    st.dataframe(dati["ricariche"], use_container_width=True)
    if ha_accesso(Ruolo.CONSIGLIO, ruolo) and dati["ricariche"]:
        rid = st.selectbox("Elimina ricarica", [r["id"] for r in dati["ricariche"]])
        if st.button("Elimina"):
            if esegui(lambda: api_send("DELETE", f"/api/compressore/{rid}"), "Ricarica eliminata."):
                st.rerun()


# Bombole

elif pagina == "Bombole":
    c1, c2 = st.columns([1, 3])
    filtro = c1.selectbox("Filtro", ["attive", "tutte", "dismesse"])
    cerca = c2.text_input("Cerca (matricola, etichetta, marca, proprietario)")
    dati = api_get("/api/bombole", {"filtro": filtro, "q": cerca or None})
    st_ = dati["stats"]
    m = st.columns(4)
    m[0].metric("Totale", st_["totale"])
    m[1].metric("Attive", st_["attive"])
    m[2].metric("Dismesse", st_["dismesse"])
    m[3].metric("Da revisionare", st_["da_revisionare"])
    st.dataframe(dati["bombole"], use_container_width=True)

    soci_min = api_get("/api/soci/attivi")
    with st.expander("Nuova bombola"):
        with st.form("nuova_bombola"):
            a, b = st.columns(2)
            matricola = a.text_input("Matricola")
            volume = b.text_input("Volume (es. 15L)")
            etichetta = a.text_input("Etichetta")
            marca = b.text_input("Marca")
            propr = a.selectbox("Proprietario", [None] + soci_min, format_func=lambda x: f"{x['cognome']} {x['nome']}" if x else "Club")
            ultima = b.date_input("Ultima revisione", value=None)
            if st.form_submit_button("Salva"):
                payload = {
                    "matricola": matricola, "volume": volume, "etichetta": etichetta, "marca": marca,
                    "proprietario_id": propr["id"] if propr else None,
                    "ultima_revisione": ultima.isoformat() if ultima else None,
                }
                if esegui(lambda: api_send("POST", "/api/bombole", payload), "Bombola creata."):
                    st.rerun()

    if dati["bombole"]:
        with st.expander("Foto / dismissione"):
            sel = st.selectbox("Bombola", dati["bombole"], format_func=lambda b: f"{b['matricola']} ({b['volume']})")
            url = signed_url("Bombole", sel["foto"])
            if url:
                st.image(url, width=240)
            foto = st.file_uploader("Nuova foto", type=["jpg", "jpeg", "png", "webp"])
            if foto and st.button("Carica foto"):
                files = {"file": (foto.name, foto.getvalue(), foto.type)}
                if esegui(lambda: api_send("POST", f"/api/bombole/{sel['id']}/foto", files=files), "Foto caricata."):
                    st.rerun()
            if st.button("Dismetti" if not sel["dismessa"] else "Riattiva"):
                if esegui(lambda: api_send("PUT", f"/api/bombole/{sel['id']}", {"dismessa": not sel["dismessa"]})):
                    st.rerun()
            if ha_accesso(Ruolo.ADMIN, ruolo) and st.button("Elimina bombola", type="primary"):
                if esegui(lambda: api_send("DELETE", f"/api/bombole/{sel['id']}"), "Bombola eliminata."):
                    st.rerun()


# Revisioni

elif pagina == "Revisioni Bombole":
    dati = api_get("/api/revisioni")
    cols = st.columns(len(dati["stats"]))
    for col, (k, v) in zip(cols, dati["stats"].items()):
        col.metric(k, v)

    with st.expander("Nuova revisione"):
        anni = st.number_input("Ultimo collaudo ad almeno N anni fa", min_value=0, value=2, step=1)
        candidate = api_get("/api/revisioni/candidate", {"anni": int(anni)})
        with st.form("nuova_revisione"):
            scelte = st.multiselect(
                "Bombole", candidate,
                format_func=lambda b: f"{b['matricola']} | {b['proprietario'] or 'club'} | {b['ultima_revisione'] or 'mai'}",
            )
            a, b = st.columns(2)
            pronte = a.date_input("Bombole pronte il", value=date.today())
            collaudo = b.date_input("Data collaudo", value=date.today())
            centro = a.text_input("Centro revisione")
            luogo = b.text_input("Luogo")
            costo = a.number_input("Costo per bombola", min_value=0.0, step=0.5)
            if st.form_submit_button("Crea"):
                payload = {
                    "bombole_ids": [x["id"] for x in scelte],
                    "data_bombole_pronte": pronte.isoformat(), "data_collaudo": collaudo.isoformat(),
                    "centro_revisione": centro, "luogo": luogo, "costo_revisione": costo,
                }
                if esegui(lambda: api_send("POST", "/api/revisioni", payload), "Revisione creata."):
                    st.rerun()

    for rev in dati["revisioni"]:
        with st.expander(f"{rev['data_collaudo']} | {rev['centro_revisione']} | {rev['stato']} | {rev['n_bombole']} bombole"):
            det = api_get(f"/api/revisioni/{rev['id']}")
            for d in det["dettagli"]:
                a, b, c = st.columns([3, 2, 1])
                a.write(f"{d['matricola']} ({d['proprietario'] or 'club'})")
                esiti = ["In Attesa", "OK", "Bocciata"]
                esito = b.selectbox("Esito", esiti, index=esiti.index(d["esito"]), key=f"es_{rev['id']}_{d['bombola_id']}")
                pagato = c.checkbox("Pagato", value=d["pagato"], key=f"pg_{rev['id']}_{d['bombola_id']}")
                if esito != d["esito"] or pagato != d["pagato"]:
                    path = f"/api/revisioni/{rev['id']}/bombole/{d['bombola_id']}"
                    if esegui(lambda: api_send("PATCH", path, {"esito": esito, "pagato": pagato}), "Esito aggiornato."):
                        st.rerun()
            stati = ["Da preparare", "Pronte", "Partite", "Tornate"]
            nuovo = st.selectbox("Stato", stati, index=stati.index(rev["stato"]), key=f"st_{rev['id']}")
            if nuovo != rev["stato"] and st.button("Aggiorna stato", key=f"bt_{rev['id']}"):
                if esegui(lambda: api_send("PATCH", f"/api/revisioni/{rev['id']}", {"stato": nuovo})):
                    st.rerun()
            url = signed_url("Revisioni", rev["certificato"])
            if url:
                st.link_button("Apri certificato", url)
            pdf = st.file_uploader("Certificato PDF", type=["pdf"], key=f"pdf_{rev['id']}")
            if pdf and st.button("Carica certificato", key=f"up_{rev['id']}"):
                files = {"file": (pdf.name, pdf.getvalue(), "application/pdf")}
                if esegui(lambda: api_send("POST", f"/api/revisioni/{rev['id']}/certificato", files=files)):
                    st.rerun()
            if st.button("Elimina revisione", key=f"del_{rev['id']}"):
                if esegui(lambda: api_send("DELETE", f"/api/revisioni/{rev['id']}"), "Revisione eliminata."):
                    st.rerun()


# Certificati

elif pagina == "Certificati":
    c1, c2 = st.columns([1, 3])
    stato = c1.selectbox("Stato", ["tutti", "scaduto", "in_scadenza", "valido"])
    cerca = c2.text_input("Cerca socio")
    dati = api_get("/api/certificati", {"stato": None if stato == "tutti" else stato, "q": cerca or None})
    m = st.columns(4)
    for col, k in zip(m, ("totale", "valido", "in_scadenza", "scaduto")):
        col.metric(k, dati["stats"][k])
    st.dataframe(dati["certificati"], use_container_width=True)

    soci_min = api_get("/api/soci/attivi")
    with st.expander("Nuovo certificato"):
        with st.form("nuovo_certificato"):
            socio = st.selectbox("Socio", soci_min, format_func=lambda x: f"{x['cognome']} {x['nome']}")
            a, b = st.columns(2)
            visita = a.date_input("Data visita", value=date.today())
            scadenza = b.date_input("Data scadenza", value=None)
            sub = st.checkbox("Attività subacquea", value=True)
            pdf = st.file_uploader("PDF (opzionale)", type=["pdf"])
            if st.form_submit_button("Salva") and socio:
                data = {
                    "socio_id": socio["id"], "data_visita": visita.isoformat(),
                    "attivita_subacquea": str(sub).lower(),
                }
                if scadenza:
                    data["data_scadenza"] = scadenza.isoformat()
                files = {"file": (pdf.name, pdf.getvalue(), "application/pdf")} if pdf else None
                if esegui(lambda: api_send("POST", "/api/certificati", data=data, files=files), "Certificato registrato."):
                    st.rerun()


# Inventario

elif pagina == "Inventario":
    c1, c2 = st.columns([3, 1])
    cerca = c1.text_input("Cerca (nome, descrizione, posizione)")
    dati = api_get("/api/inventario", {"q": cerca or None})
    categoria = c2.selectbox("Categoria", ["tutte"] + dati["categorie"])
    if categoria != "tutte":
        dati = api_get("/api/inventario", {"q": cerca or None, "categoria": categoria})
    s = dati["stats"]
    m = st.columns(4)
    m[0].metric("Totale", s["totale"])
    m[1].metric("Attivi", s["attivi"])
    m[2].metric("Distrutti", s["distrutti"])
    m[3].metric("Valore", euro(s["valore_totale"]))
    st.dataframe(dati["articoli"], use_container_width=True)

    if ha_accesso(Ruolo.CONSIGLIO, ruolo):
        with st.expander("Nuovo articolo"):
            with st.form("nuovo_articolo"):
                a, b = st.columns(2)
                nome = a.text_input("Nome")
                cat = b.text_input("Categoria")
                posizione = a.text_input("Posizione")
                valore = b.number_input("Valore (€)", min_value=0.0, step=1.0)
                noleggiabile = a.checkbox("Noleggiabile")
                if st.form_submit_button("Salva"):
                    payload = {
                        "nome": nome, "categoria": cat, "posizione": posizione,
                        "valore_attuale": int(round(valore * 100)), "noleggiabile": noleggiabile,
                    }
                    if esegui(lambda: api_send("POST", "/api/inventario", payload), "Articolo creato."):
                        st.rerun()
        if dati["articoli"]:
            sel = st.selectbox("Articolo", dati["articoli"], format_func=lambda x: x["nome"])
            if st.button("Segna come distrutto"):
                if esegui(lambda: api_send("PUT", f"/api/inventario/{sel['id']}", {"distrutto": True})):
                    st.rerun()
            if st.button("Elimina articolo", type="primary"):
                if esegui(lambda: api_send("DELETE", f"/api/inventario/{sel['id']}"), "Articolo eliminato."):
                    st.rerun()


# Noleggi

elif pagina == "Noleggi":
    c1, c2 = st.columns([1, 3])
    stato = c1.selectbox("Stato", ["tutti", "Attivo", "Completato"])
    cerca = c2.text_input("Cerca socio")
    elenco = api_get("/api/noleggi", {"stato": None if stato == "tutti" else stato, "q": cerca or None})

    soci_min = api_get("/api/soci/attivi")
    articoli = api_get("/api/inventario", {"noleggiabili": True})["articoli"]
    with st.expander("Nuovo noleggio"):
        with st.form("nuovo_noleggio"):
            socio = st.selectbox("Socio", soci_min, format_func=lambda x: f"{x['cognome']} {x['nome']}")
            a, b = st.columns(2)
            inizio = a.date_input("Inizio", value=date.today())
            fine = b.date_input("Fine prevista", value=date.today())
            scelti = st.multiselect("Articoli", articoli, format_func=lambda x: x["nome"])
            note = st.text_input("Note")
            if st.form_submit_button("Crea") and socio:
                payload = {
                    "socio_id": socio["id"], "data_inizio": inizio.isoformat(), "data_fine_prevista": fine.isoformat(),
                    "note": note, "righe": [{"articolo_id": x["id"], "quantita": 1} for x in scelti],
                }
                if esegui(lambda: api_send("POST", "/api/noleggi", payload), "Noleggio creato."):
                    st.rerun()

    for n in elenco:
        righe = ", ".join(f"{r['articolo']} x{r['quantita']}" for r in n["righe"])
        with st.expander(f"{n['socio']} | {n['data_inizio']} → {n['data_fine_prevista']} | {n['stato']}"):
            st.write(righe or "-")
            if n["stato"] == "Attivo":
                rest = st.date_input("Data restituzione", value=date.today(), key=f"rest_{n['id']}")
                if st.button("Registra restituzione", key=f"rbt_{n['id']}"):
                    if esegui(lambda: api_send("POST", f"/api/noleggi/{n['id']}/restituzione", {"data_restituzione": rest.isoformat()})):
                        st.rerun()
            if ha_accesso(Ruolo.CONSIGLIO, ruolo) and st.button("Elimina", key=f"ndel_{n['id']}"):
                if esegui(lambda: api_send("DELETE", f"/api/noleggi/{n['id']}"), "Noleggio eliminato."):
                    st.rerun()


# Piscina

elif pagina == "Piscina":
    tab1, tab2, tab3 = st.tabs(["Registrazione ingresso", "Pacchetti", "Statistiche"])
    soci_min = api_get("/api/soci/attivi")

    with tab1:
        with st.form("ingresso"):
            socio = st.selectbox("Socio", soci_min, format_func=lambda x: f"{x['cognome']} {x['nome']}")
            tipo = st.radio("Tipo ingresso", ["abbonamento", "singolo"], horizontal=True)
            importo = st.number_input("Importo (solo singolo)", min_value=0.0, step=0.5)
            note = st.text_input("Note")
            if st.form_submit_button("Registra") and socio:
                payload = {
                    "socio_id": socio["id"], "tipo_ingresso": tipo,
                    "importo": importo if tipo == "singolo" else None, "note": note,
                }
                esegui(lambda: api_send("POST", "/api/piscina/ingressi", payload), "Ingresso registrato con successo")

    with tab2:
        with st.form("pacchetto"):
            socio = st.selectbox("Socio", soci_min, format_func=lambda x: f"{x['cognome']} {x['nome']}", key="pk_socio")
            scadenza = st.date_input("Scadenza", value=None)
            totali = st.number_input("Ingressi", min_value=1, value=5, step=1)
            if st.form_submit_button("Crea pacchetto") and socio:
                payload = {
                    "socio_id": socio["id"], "ingressi_totali": int(totali),
                    "data_scadenza": scadenza.isoformat() if scadenza else None,
                }
                if esegui(lambda: api_send("POST", "/api/piscina/pacchetti", payload), "Pacchetto creato."):
                    st.rerun()
        for p in api_get("/api/piscina/pacchetti"):
            a, b = st.columns([4, 1])
            a.write(f"{p['socio']} | {p['ingressi_residui']} rimasti su {p['ingressi_totali']} | scade {p['data_scadenza']}")
            if b.button("Disattiva", key=f"dis_{p['id']}"):
                if esegui(lambda: api_send("POST", f"/api/piscina/pacchetti/{p['id']}/disattiva")):
                    st.rerun()

    with tab3:
        giorno = st.date_input("Giorno", value=date.today(), key="pisc_giorno")
        s = api_get("/api/piscina/presenze", {"giorno": giorno.isoformat()})
        m = st.columns(4)
        m[0].metric("Presenti", s["totale_presenti"])
        m[1].metric("Abbonamento", s["ingressi_abbonamento"])
        m[2].metric("Singoli", s["ingressi_singoli"])
        m[3].metric("Introito singoli", f"€ {s['introito_singoli']:.2f}")
        st.dataframe(s["presenze"], use_container_width=True)
        stagione = api_get("/api/piscina/stagione")
        st.subheader(f"Stagione {stagione['inizio']} → {stagione['fine']}")
        st.bar_chart(stagione["per_mese"])


# Vestiario

elif pagina == "Vestiario":
    elenco = api_get("/api/vestiario")
    st.dataframe(elenco, use_container_width=True)
    with st.expander("Nuovo capo"):
        with st.form("nuovo_capo"):
            a, b = st.columns(2)
            descr = a.text_input("Descrizione")
            taglia = b.text_input("Taglia")
            colore = a.text_input("Colore")
            qta = b.number_input("Quantità", min_value=0, step=1)
            prezzo = a.number_input("Prezzo (€)", min_value=0.0, step=0.5)
            if st.form_submit_button("Salva"):
                payload = {"descrizione": descr, "taglia": taglia, "colore": colore, "qta": int(qta), "prezzo": prezzo}
                if esegui(lambda: api_send("POST", "/api/vestiario", payload), "Capo creato."):
                    st.rerun()
    if elenco:
        sel = st.selectbox("Capo", elenco, format_func=lambda c: f"{c['descrizione']} {c['taglia'] or ''}")
        if st.button("Elimina capo"):
            if esegui(lambda: api_send("DELETE", f"/api/vestiario/{sel['id']}"), "Capo eliminato."):
                st.rerun()


# Gestione utenti

elif pagina == "Gestione utenti":
    utenti = api_get("/api/gestione-utenti")["users"]
    ruoli = api_get("/api/roles")
    for u in utenti:
        a, b, c = st.columns([3, 2, 1])
        a.write(f"**{u['email']}**  \nultimo accesso: {u['last_sign_in_at'] or '-'}")
        attuale = u["role"]["id"] if u["role"] else None
        ids = [r["id"] for r in ruoli]
        scelto = b.selectbox(
            "Ruolo", ruoli, index=ids.index(attuale) if attuale in ids else len(ruoli) - 1,
            format_func=lambda r: r["name"], key=f"ru_{u['id']}",
        )
        if scelto["id"] != attuale and b.button("Salva ruolo", key=f"sr_{u['id']}"):
            if esegui(lambda: api_send("PATCH", "/api/gestione-utenti", {"userId": u["id"], "roleId": scelto["id"]})):
                st.rerun()
        if u["id"] != st.session_state["me"]["id"] and c.button("Elimina", key=f"du_{u['id']}"):
            if esegui(lambda: api_send("DELETE", "/api/gestione-utenti", {"userId": u["id"]}), "Utente eliminato."):
                st.rerun()

    with st.expander("Nuovo utente"):
        with st.form("nuovo_utente"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            r = st.selectbox("Ruolo", ruoli, format_func=lambda r: r["name"])
            if st.form_submit_button("Crea"):
                payload = {"email": email, "password": password, "roleId": r["id"] if r else None}
                if esegui(lambda: api_send("POST", "/api/gestione-utenti", payload), "Utente creato."):
                    st.rerun()


# Profilo

elif pagina == "Profilo":
    prof = api_get("/api/profilo")
    socio = prof["socio"]
    if socio is None:
        st.info("Nessun socio collegato a questa email.")
    else:
        a, b = st.columns([1, 3])
        url = signed_url("Avatar", socio["avatar"])
        if url:
            a.image(url, width=140)
        b.subheader(f"{socio['nome']} {socio['cognome']}")
        b.write(f"Brevetto: {socio['brevetto'] or '-'} | Tipo socio: {socio['tipo_socio'] or '-'}")
        b.write(f"Ricariche effettuate come addetto: {prof['ricariche_effettuate']}")
        avatar = st.file_uploader("Cambia avatar", type=["jpg", "jpeg", "png", "webp"])
        if avatar and st.button("Carica avatar"):
            files = {"file": (avatar.name, avatar.getvalue(), avatar.type)}
            if esegui(lambda: api_send("POST", "/api/profilo/avatar", files=files), "Avatar aggiornato."):
                st.rerun()

        pisc = api_get("/api/profilo/piscina")
        st.subheader("Piscina")
        st.write(f"Ingressi residui: **{pisc['ingressi_residui']}**")
        st.dataframe(pisc["presenze"], use_container_width=True)

    with st.expander("Cambia password"):
        with st.form("password"):
            nuova = st.text_input("Nuova password", type="password")
            conferma = st.text_input("Conferma password", type="password")
            if st.form_submit_button("Aggiorna"):
                if nuova != conferma:
                    st.error("Le password non coincidono.")
                else:
                    esegui(lambda: api_send("POST", "/api/profilo/password", {"password": nuova}), "Password aggiornata.")
