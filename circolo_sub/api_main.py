from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from fastapi import Body, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import storage
from .auth_models import Utente
from .auth_security import create_access_token, get_subject
from .auth_service import (
    assegna_ruolo,
    autentica,
    cambia_password,
    crea_utente,
    elimina_utente,
    get_utente_by_id,
    lista_ruoli,
    lista_utenti_con_ruolo,
    risolvi_ruolo,
)
from .config import configure_logging
from .db import init_db
from .errors import NonTrovato
from .roles import Ruolo, ha_accesso
from .seed import seed_base
from .services import (
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

logger = logging.getLogger(__name__)

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

app = FastAPI(title="Circolo Sub API", version="1.0.0")


# Startup

@app.on_event("startup")
def startup() -> None:
    configure_logging()
    # Crea tabelle e seed base (idempotente)
    init_db()
    seed_base()


# Errori: il body è sempre {"error": "<messaggio>"}

@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {"error": "Dati non validi.", "dettagli": jsonable_encoder(exc.errors())},
        status_code=422,
    )


@app.exception_handler(NonTrovato)
async def not_found_error(request: Request, exc: NonTrovato) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=status.HTTP_404_NOT_FOUND)


@app.exception_handler(PermissionError)
async def permission_error(request: Request, exc: PermissionError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=status.HTTP_403_FORBIDDEN)


@app.exception_handler(ValueError)
async def value_error(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)


# Schemi Auth

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MeOut(BaseModel):
    id: str
    email: str
    ruolo: str
    is_active: bool


class NuovoUtenteIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str | None = None
    password: str | None = None
    role_id: int | None = Field(None, alias="roleId")


class CambioRuoloIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")
    role_id: int | None = Field(None, alias="roleId")


class UtenteIdIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(None, alias="userId")


class PasswordIn(BaseModel):
    password: str


# Schemi Domain (tutti i campi opzionali: gli update sono parziali)

class SocioIn(BaseModel):
    nome: str | None = None
    cognome: str | None = None
    email: str | None = None
    telefono: str | None = None
    attivo: bool | None = None
    tipo_socio_id: int | None = None
    brevetto_id: int | None = None
    specializzazione: str | None = None
    data_nascita: date | None = None
    luogo_nascita: str | None = None
    indirizzo: str | None = None
    cap: str | None = None
    comune: str | None = None
    provincia: str | None = None
    nazione: str | None = None
    professione: str | None = None
    codice_fiscale: str | None = None
    addetto_ricarica: bool | None = None
    assicurazione: bool | None = None
    tipo_assicurazione: str | None = None
    fin: bool | None = None
    nota_fin: str | None = None
    patente_nautica: bool | None = None
    nota_patente: str | None = None


class RicaricaIn(BaseModel):
    data: date | None = None
    mono: int | None = None
    bibo: int | None = None
    lettura_finale: float | None = None
    addetto_id: int | None = None
    note: str | None = None


class BombolaIn(BaseModel):
    proprietario_id: int | None = None
    matricola: str | None = None
    codice: int | None = None
    etichetta: str | None = None
    volume: str | None = None
    marca: str | None = None
    attacco: str | None = None
    rubinetto: str | None = None
    materiale: str | None = None
    nota: str | None = None
    stato_revisione: str | None = None
    dismessa: bool | None = None
    ultima_revisione: date | None = None


class RevisioneIn(BaseModel):
    data_bombole_pronte: date | None = None
    data_collaudo: date | None = None
    luogo: str | None = None
    centro_revisione: str | None = None
    costo_revisione: float | None = None
    arrotondamento: float | None = None
    stato: str | None = None


class NuovaRevisioneIn(RevisioneIn):
    bombole_ids: list[int] = Field(default_factory=list)


class DettaglioRevisioneIn(BaseModel):
    esito: str | None = None
    pagato: bool | None = None


class ArticoloIn(BaseModel):
    nome: str | None = None
    descrizione: str | None = None
    categoria: str | None = None
    stato: str | None = None
    posizione: str | None = None
    valore_attuale: int | None = Field(None, description="centesimi di euro")
    distrutto: bool | None = None
    noleggiabile: bool | None = None
    note: str | None = None


class RigaNoleggioIn(BaseModel):
    articolo_id: int
    quantita: int = 1


class NoleggioIn(BaseModel):
    socio_id: int | None = None
    data_inizio: date | None = None
    data_fine_prevista: date | None = None
    note: str | None = None
    righe: list[RigaNoleggioIn] = Field(default_factory=list)


class RestituzioneIn(BaseModel):
    data_restituzione: date | None = None


class PacchettoIn(BaseModel):
    socio_id: int
    data_scadenza: date | None = None
    data_acquisto: date | None = None
    ingressi_totali: int = piscina.INGRESSI_PACCHETTO


class IngressoIn(BaseModel):
    socio_id: int
    tipo_ingresso: str
    importo: float | None = None
    note: str | None = None


class CapoIn(BaseModel):
    descrizione: str | None = None
    qta: int | None = None
    taglia: str | None = None
    colore: str | None = None
    prezzo: float | None = None
    note: str | None = None
    attivo: bool | None = None


# Dipendenze auth

@dataclass(frozen=True)
class Chiamante:
    utente: Utente
    ruolo: Ruolo


def get_current_user(token: str = Depends(oauth2_scheme)) -> Utente:
    # protezione extra: elimina spazi / virgolette accidentali
    token = token.strip().strip('"').strip("'")

    user_id = get_subject(token)
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token non valido")

    u = get_utente_by_id(user_id)
    if not u or not u.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Utente non valido")
    return u


def get_chiamante(user: Utente = Depends(get_current_user)) -> Chiamante:
    # ruolo riletto a ogni richiesta, mai in cache
    return Chiamante(utente=user, ruolo=risolvi_ruolo(user.id))


def richiede_ruolo(richiesto: Ruolo) -> Callable[..., Chiamante]:
    """Guardia unica per tutte le aree: 401 senza login, 403 se il ruolo non basta."""

    def guardia(c: Chiamante = Depends(get_chiamante)) -> Chiamante:
        if not ha_accesso(richiesto, c.ruolo):
            logger.warning("Accesso negato a %s (%s), richiesto %s", c.utente.email, c.ruolo.value, richiesto.value)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Non autorizzato")
        return c

    return guardia


autenticato = get_chiamante
staff = richiede_ruolo(Ruolo.STAFF)
consiglio = richiede_ruolo(Ruolo.CONSIGLIO)
admin = richiede_ruolo(Ruolo.ADMIN)


def _dati(payload: BaseModel) -> dict[str, Any]:
    return payload.model_dump(exclude_unset=True)


def _socio_collegato(c: Chiamante) -> int:
    p = soci.socio_per_email(c.utente.email)
    if p is None:
        raise NonTrovato("Nessun socio collegato a questo utente.")
    return p.id


# AUTH endpoints

@app.post("/api/auth/login", response_model=TokenOut)
def login(form: OAuth2PasswordRequestForm = Depends()) -> TokenOut:
    # username del form = email
    u = autentica(form.username, form.password)
    if not u:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenziali non valide")

    token = create_access_token(subject=u.id, extra={"email": u.email})
    return TokenOut(access_token=token)


@app.get("/api/me", response_model=MeOut)
def me(c: Chiamante = Depends(autenticato)) -> MeOut:
    return MeOut(id=c.utente.id, email=c.utente.email, ruolo=c.ruolo.value, is_active=c.utente.is_active)


@app.get("/api/roles")
def api_ruoli(c: Chiamante = Depends(admin)) -> list[dict]:
    return lista_ruoli()


# Gestione utenti (solo Admin)

@app.get("/api/gestione-utenti")
def gestione_utenti_lista(c: Chiamante = Depends(admin)) -> dict[str, Any]:
    users = [
        {
            "id": u.id,
            "email": u.email,
            "created_at": u.created_at.isoformat(),
            "last_sign_in_at": u.last_sign_in_at.isoformat() if u.last_sign_in_at else None,
            "role": {"id": u.role_id, "name": u.role_name} if u.role_id is not None else None,
        }
        for u in lista_utenti_con_ruolo()
    ]
    return {"users": users}


@app.post("/api/gestione-utenti")
def gestione_utenti_crea(payload: NuovoUtenteIn, c: Chiamante = Depends(admin)) -> dict[str, Any]:
    if not payload.email or not payload.password or not payload.role_id:
        raise HTTPException(status_code=400, detail="email, password e ruolo sono obbligatori")
    user_id = crea_utente(payload.email, payload.password, payload.role_id)
    return {"success": True, "userId": user_id}


@app.patch("/api/gestione-utenti")
def gestione_utenti_ruolo(payload: CambioRuoloIn, c: Chiamante = Depends(admin)) -> dict[str, Any]:
    if not payload.user_id or not payload.role_id:
        raise HTTPException(status_code=400, detail="userId e roleId obbligatori")
    assegna_ruolo(payload.user_id, payload.role_id)
    return {"success": True}


@app.delete("/api/gestione-utenti")
def gestione_utenti_elimina(payload: UtenteIdIn = Body(...), c: Chiamante = Depends(admin)) -> dict[str, Any]:
    if not payload.user_id:
        raise HTTPException(status_code=400, detail="userId obbligatorio")
    if payload.user_id == c.utente.id:
        raise HTTPException(status_code=400, detail="Non puoi eliminare il tuo utente.")
    elimina_utente(payload.user_id)
    return {"success": True}


# Storage privato

@app.get("/api/signed-url")
def signed_url(
    bucket: str | None = Query(None),
    path: str | None = Query(None),
    c: Chiamante = Depends(autenticato),
) -> dict[str, str]:
    if not bucket or not path:
        raise HTTPException(status_code=400, detail="Missing bucket or path")
    return {"url": storage.crea_signed_url(bucket, path)}


@app.get("/api/files/{bucket}/{path:path}")
def file_firmato(bucket: str, path: str, token: str = Query(...)) -> FileResponse:
    return FileResponse(storage.leggi_percorso(bucket, path, token))


# Dashboard e profilo

@app.get("/api/dashboard")
def api_dashboard(c: Chiamante = Depends(autenticato)) -> dict:
    return soci.dashboard()


@app.get("/api/profilo")
def api_profilo(c: Chiamante = Depends(autenticato)) -> dict:
    out = soci.profilo(c.utente.email)
    out["ruolo"] = c.ruolo.value
    return out


@app.post("/api/profilo/password")
def api_profilo_password(payload: PasswordIn, c: Chiamante = Depends(autenticato)) -> dict:
    cambia_password(c.utente.id, payload.password)
    return {"ok": True}


@app.post("/api/profilo/avatar")
def api_profilo_avatar(file: UploadFile = File(...), c: Chiamante = Depends(autenticato)) -> dict:
    socio_id = _socio_collegato(c)
    path = soci.aggiorna_avatar(socio_id, file.filename, file.content_type, file.file.read())
    return {"ok": True, "avatar": path}


@app.get("/api/profilo/piscina")
def api_profilo_piscina(c: Chiamante = Depends(autenticato)) -> dict:
    return piscina.dati_socio(_socio_collegato(c))


# Soci

@app.get("/api/soci")
def api_soci(
    q: str | None = Query(None),
    attivo: bool | None = Query(None),
    c: Chiamante = Depends(autenticato),
) -> list[dict]:
    return soci.lista_soci(q, attivo)


@app.get("/api/soci/attivi")
def api_soci_attivi(c: Chiamante = Depends(autenticato)) -> list[dict]:
    return soci.soci_attivi_min()


@app.get("/api/soci/{socio_id}")
def api_socio(socio_id: int, c: Chiamante = Depends(autenticato)) -> dict:
    return soci.get_socio(socio_id)


@app.post("/api/soci")
def api_socio_crea(payload: SocioIn, c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "id": soci.crea_socio(_dati(payload))}


@app.put("/api/soci/{socio_id}")
def api_socio_aggiorna(socio_id: int, payload: SocioIn, c: Chiamante = Depends(consiglio)) -> dict:
    return soci.aggiorna_socio(socio_id, _dati(payload))


@app.post("/api/soci/{socio_id}/avatar")
def api_socio_avatar(socio_id: int, file: UploadFile = File(...), c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "avatar": soci.aggiorna_avatar(socio_id, file.filename, file.content_type, file.file.read())}


@app.delete("/api/soci/{socio_id}")
def api_socio_elimina(socio_id: int, c: Chiamante = Depends(admin)) -> dict:
    soci.elimina_socio(socio_id)
    return {"ok": True}


@app.get("/api/brevetti")
def api_brevetti(c: Chiamante = Depends(autenticato)) -> list[dict]:
    return soci.lista_brevetti()


@app.get("/api/tipi-socio")
def api_tipi_socio(c: Chiamante = Depends(autenticato)) -> list[dict]:
    return soci.lista_tipi_socio()


# Compressore

@app.get("/api/compressore")
def api_compressore(c: Chiamante = Depends(staff)) -> dict:
    return compressore.lista_ricariche()


@app.get("/api/compressore/addetti")
def api_compressore_addetti(c: Chiamante = Depends(staff)) -> list[dict]:
    return compressore.lista_addetti()


@app.post("/api/compressore")
def api_ricarica_crea(payload: RicaricaIn, c: Chiamante = Depends(staff)) -> dict:
    return {"ok": True, "id": compressore.crea_ricarica(_dati(payload))}


@app.put("/api/compressore/{ricarica_id}")
def api_ricarica_aggiorna(ricarica_id: int, payload: RicaricaIn, c: Chiamante = Depends(staff)) -> dict:
    return compressore.aggiorna_ricarica(ricarica_id, _dati(payload))


@app.delete("/api/compressore/{ricarica_id}")
def api_ricarica_elimina(ricarica_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    compressore.elimina_ricarica(ricarica_id)
    return {"ok": True}


# Bombole

@app.get("/api/bombole")
def api_bombole(
    filtro: str = Query("attive"),
    q: str | None = Query(None),
    c: Chiamante = Depends(consiglio),
) -> dict:
    return bombole.lista_bombole(filtro, q)


@app.get("/api/bombole/{bombola_id}")
def api_bombola(bombola_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    return bombole.get_bombola(bombola_id)


@app.post("/api/bombole")
def api_bombola_crea(payload: BombolaIn, c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "id": bombole.crea_bombola(_dati(payload))}


@app.put("/api/bombole/{bombola_id}")
def api_bombola_aggiorna(bombola_id: int, payload: BombolaIn, c: Chiamante = Depends(consiglio)) -> dict:
    return bombole.aggiorna_bombola(bombola_id, _dati(payload))


@app.post("/api/bombole/{bombola_id}/foto")
def api_bombola_foto(bombola_id: int, file: UploadFile = File(...), c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "foto": bombole.carica_foto(bombola_id, file.filename, file.content_type, file.file.read())}


@app.delete("/api/bombole/{bombola_id}")
def api_bombola_elimina(bombola_id: int, c: Chiamante = Depends(admin)) -> dict:
    bombole.elimina_bombola(bombola_id)
    return {"ok": True}


# Revisioni

@app.get("/api/revisioni")
def api_revisioni(c: Chiamante = Depends(consiglio)) -> dict:
    return revisioni.lista_revisioni()


@app.get("/api/revisioni/candidate")
def api_revisioni_candidate(anni: int | None = Query(2, ge=0), c: Chiamante = Depends(consiglio)) -> list[dict]:
    return revisioni.bombole_candidate(anni)


@app.get("/api/revisioni/{revisione_id}")
def api_revisione(revisione_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    return revisioni.get_revisione(revisione_id)


@app.post("/api/revisioni")
def api_revisione_crea(payload: NuovaRevisioneIn, c: Chiamante = Depends(consiglio)) -> dict:
    dati = _dati(payload)
    ids = dati.pop("bombole_ids", [])
    return {"ok": True, "id": revisioni.crea_revisione(dati, ids)}


@app.patch("/api/revisioni/{revisione_id}")
def api_revisione_aggiorna(revisione_id: int, payload: RevisioneIn, c: Chiamante = Depends(consiglio)) -> dict:
    return revisioni.aggiorna_revisione(revisione_id, _dati(payload))


@app.patch("/api/revisioni/{revisione_id}/bombole/{bombola_id}")
def api_revisione_dettaglio(
    revisione_id: int, bombola_id: int, payload: DettaglioRevisioneIn, c: Chiamante = Depends(consiglio)
) -> dict:
    return revisioni.aggiorna_dettaglio(revisione_id, bombola_id, payload.esito, payload.pagato)


@app.post("/api/revisioni/{revisione_id}/certificato")
def api_revisione_certificato(
    revisione_id: int, file: UploadFile = File(...), c: Chiamante = Depends(consiglio)
) -> dict:
    path = revisioni.carica_certificato(revisione_id, file.filename, file.content_type, file.file.read())
    return {"ok": True, "certificato": path}


@app.delete("/api/revisioni/{revisione_id}")
def api_revisione_elimina(revisione_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    revisioni.elimina_revisione(revisione_id)
    return {"ok": True}


# Certificati medici

@app.get("/api/certificati")
def api_certificati(
    stato: str | None = Query(None),
    q: str | None = Query(None),
    c: Chiamante = Depends(consiglio),
) -> dict:
    return certificati.lista_certificati(stato, q)


@app.get("/api/certificati/socio/{socio_id}")
def api_certificati_socio(socio_id: int, c: Chiamante = Depends(consiglio)) -> list[dict]:
    return certificati.certificati_socio(socio_id)


@app.post("/api/certificati")
def api_certificato_crea(
    socio_id: int = Form(...),
    data_visita: date = Form(...),
    data_scadenza: date | None = Form(None),
    attivita_subacquea: bool = Form(True),
    file: UploadFile | None = File(None),
    c: Chiamante = Depends(consiglio),
) -> dict:
    dati = {
        "socio_id": socio_id,
        "data_visita": data_visita,
        "data_scadenza": data_scadenza,
        "attivita_subacquea": attivita_subacquea,
    }
    if file is not None:
        cid = certificati.crea_certificato(dati, file.filename, file.content_type, file.file.read())
    else:
        cid = certificati.crea_certificato(dati)
    return {"ok": True, "id": cid}


@app.delete("/api/certificati/{certificato_id}")
def api_certificato_elimina(certificato_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    certificati.elimina_certificato(certificato_id)
    return {"ok": True}


# Inventario

@app.get("/api/inventario")
def api_inventario(
    q: str | None = Query(None),
    categoria: str | None = Query(None),
    stato: str | None = Query(None),
    noleggiabili: bool = Query(False),
    c: Chiamante = Depends(staff),
) -> dict:
    return inventario.lista_articoli(q, categoria, stato, noleggiabili)


@app.get("/api/inventario/{articolo_id}")
def api_articolo(articolo_id: int, c: Chiamante = Depends(staff)) -> dict:
    return inventario.get_articolo(articolo_id)


@app.post("/api/inventario")
def api_articolo_crea(payload: ArticoloIn, c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "id": inventario.crea_articolo(_dati(payload))}


@app.put("/api/inventario/{articolo_id}")
def api_articolo_aggiorna(articolo_id: int, payload: ArticoloIn, c: Chiamante = Depends(consiglio)) -> dict:
    return inventario.aggiorna_articolo(articolo_id, _dati(payload))


@app.post("/api/inventario/{articolo_id}/foto")
def api_articolo_foto(articolo_id: int, file: UploadFile = File(...), c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "foto": inventario.carica_foto(articolo_id, file.filename, file.content_type, file.file.read())}


@app.delete("/api/inventario/{articolo_id}")
def api_articolo_elimina(articolo_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    inventario.elimina_articolo(articolo_id)
    return {"ok": True}


# Noleggi

@app.get("/api/noleggi")
def api_noleggi(
    stato: str | None = Query(None),
    q: str | None = Query(None),
    c: Chiamante = Depends(staff),
) -> list[dict]:
    return noleggi.lista_noleggi(stato, q)


@app.get("/api/noleggi/{noleggio_id}")
def api_noleggio(noleggio_id: int, c: Chiamante = Depends(staff)) -> dict:
    return noleggi.get_noleggio(noleggio_id)


@app.post("/api/noleggi")
def api_noleggio_crea(payload: NoleggioIn, c: Chiamante = Depends(staff)) -> dict:
    righe = [r.model_dump() for r in payload.righe]
    dati = payload.model_dump(exclude={"righe"})
    return {"ok": True, "id": noleggi.crea_noleggio(dati, righe)}


@app.post("/api/noleggi/{noleggio_id}/restituzione")
def api_noleggio_restituzione(noleggio_id: int, payload: RestituzioneIn, c: Chiamante = Depends(staff)) -> dict:
    return noleggi.restituisci(noleggio_id, payload.data_restituzione)


@app.delete("/api/noleggi/{noleggio_id}")
def api_noleggio_elimina(noleggio_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    noleggi.elimina_noleggio(noleggio_id)
    return {"ok": True}


# Piscina

@app.get("/api/piscina/presenze")
def api_piscina_presenze(giorno: date | None = Query(None), c: Chiamante = Depends(staff)) -> dict:
    return piscina.statistiche_giorno(giorno)


@app.get("/api/piscina/stagione")
def api_piscina_stagione(c: Chiamante = Depends(staff)) -> dict:
    return piscina.riepilogo_stagione()


@app.post("/api/piscina/ingressi")
def api_piscina_ingresso(payload: IngressoIn, c: Chiamante = Depends(staff)) -> dict:
    pid = piscina.registra_ingresso(payload.socio_id, payload.tipo_ingresso, payload.importo, payload.note)
    return {"ok": True, "id": pid}


@app.delete("/api/piscina/ingressi/{presenza_id}")
def api_piscina_ingresso_elimina(presenza_id: int, c: Chiamante = Depends(staff)) -> dict:
    piscina.elimina_presenza(presenza_id)
    return {"ok": True}


@app.get("/api/piscina/pacchetti")
def api_piscina_pacchetti(
    tutti: bool = Query(False),
    socio_id: int | None = Query(None),
    c: Chiamante = Depends(staff),
) -> list[dict]:
    return piscina.lista_pacchetti(solo_attivi=not tutti, socio_id=socio_id)


@app.post("/api/piscina/pacchetti")
def api_piscina_pacchetto_crea(payload: PacchettoIn, c: Chiamante = Depends(staff)) -> dict:
    pid = piscina.crea_pacchetto(payload.socio_id, payload.data_scadenza, payload.data_acquisto, payload.ingressi_totali)
    return {"ok": True, "id": pid}


@app.post("/api/piscina/pacchetti/{pacchetto_id}/disattiva")
def api_piscina_pacchetto_disattiva(pacchetto_id: int, c: Chiamante = Depends(staff)) -> dict:
    piscina.disattiva_pacchetto(pacchetto_id)
    return {"ok": True}


@app.get("/api/piscina/soci/{socio_id}")
def api_piscina_socio(socio_id: int, c: Chiamante = Depends(autenticato)) -> dict:
    # Staff+ vede tutti i soci, Socio vede solo se stesso
    if not ha_accesso(Ruolo.STAFF, c.ruolo):
        p = soci.socio_per_email(c.utente.email)
        if p is None or p.id != socio_id:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Non autorizzato")
    return piscina.dati_socio(socio_id)


# Vestiario

@app.get("/api/vestiario")
def api_vestiario(solo_attivi: bool = Query(False), c: Chiamante = Depends(consiglio)) -> list[dict]:
    return vestiario.lista_vestiario(solo_attivi)


@app.post("/api/vestiario")
def api_capo_crea(payload: CapoIn, c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "id": vestiario.crea_capo(_dati(payload))}


@app.put("/api/vestiario/{capo_id}")
def api_capo_aggiorna(capo_id: int, payload: CapoIn, c: Chiamante = Depends(consiglio)) -> dict:
    return vestiario.aggiorna_capo(capo_id, _dati(payload))


@app.post("/api/vestiario/{capo_id}/foto")
def api_capo_foto(capo_id: int, file: UploadFile = File(...), c: Chiamante = Depends(consiglio)) -> dict:
    return {"ok": True, "foto": vestiario.carica_foto(capo_id, file.filename, file.content_type, file.file.read())}


@app.delete("/api/vestiario/{capo_id}")
def api_capo_elimina(capo_id: int, c: Chiamante = Depends(consiglio)) -> dict:
    vestiario.elimina_capo(capo_id)
    return {"ok": True}
