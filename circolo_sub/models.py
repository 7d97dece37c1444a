from __future__ import annotations

import enum
from datetime import date, datetime, time

from sqlalchemy import Boolean, Date, DateTime, Enum, Float, ForeignKey, Integer, String, Text, Time, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


class StatoRevisione(enum.Enum):
    DA_PREPARARE = "Da preparare"
    PRONTE = "Pronte"
    PARTITE = "Partite"
    TORNATE = "Tornate"


class EsitoRevisione(enum.Enum):
    IN_ATTESA = "In Attesa"
    OK = "OK"
    BOCCIATA = "Bocciata"


class StatoNoleggio(enum.Enum):
    ATTIVO = "Attivo"
    COMPLETATO = "Completato"


class TipoIngresso(enum.Enum):
    ABBONAMENTO = "abbonamento"
    SINGOLO = "singolo"


def _enum_values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]


# =========================
# Anagrafiche di supporto
# =========================
class Brevetto(Base):
    __tablename__ = "brevetti"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    nome: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)
    didattica: Mapped[str | None] = mapped_column(String(40), nullable=True)
    ordinamento: Mapped[int | None] = mapped_column(Integer, nullable=True)


class TipoSocio(Base):
    __tablename__ = "tipi_socio"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    descrizione: Mapped[str] = mapped_column(String(80), nullable=False, unique=True)


# =========================
# Soci
# =========================
class Socio(Base):
    __tablename__ = "soci"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    nome: Mapped[str] = mapped_column(String(80), nullable=False)
    cognome: Mapped[str] = mapped_column(String(80), nullable=False)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True, index=True)
    telefono: Mapped[str | None] = mapped_column(String(30), nullable=True)
    attivo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    avatar: Mapped[str | None] = mapped_column(String(255), nullable=True)

    tipo_socio_id: Mapped[int | None] = mapped_column(ForeignKey("tipi_socio.id"), nullable=True)
    brevetto_id: Mapped[int | None] = mapped_column(ForeignKey("brevetti.id"), nullable=True)
    specializzazione: Mapped[str | None] = mapped_column(String(120), nullable=True)

    data_nascita: Mapped[date | None] = mapped_column(Date, nullable=True)
    luogo_nascita: Mapped[str | None] = mapped_column(String(80), nullable=True)
    indirizzo: Mapped[str | None] = mapped_column(String(160), nullable=True)
    cap: Mapped[str | None] = mapped_column(String(10), nullable=True)
    comune: Mapped[str | None] = mapped_column(String(80), nullable=True)
    provincia: Mapped[str | None] = mapped_column(String(4), nullable=True)
    nazione: Mapped[str | None] = mapped_column(String(60), nullable=True, default="Italia")
    professione: Mapped[str | None] = mapped_column(String(80), nullable=True)
    codice_fiscale: Mapped[str | None] = mapped_column(String(16), nullable=True, unique=True)

    addetto_ricarica: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    assicurazione: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tipo_assicurazione: Mapped[str | None] = mapped_column(String(80), nullable=True)
    fin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    nota_fin: Mapped[str | None] = mapped_column(Text, nullable=True)
    patente_nautica: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    nota_patente: Mapped[str | None] = mapped_column(Text, nullable=True)

    brevetto: Mapped["Brevetto"] = relationship()
    tipo_socio: Mapped["TipoSocio"] = relationship()

    # figli "posseduti" dal socio
    certificati: Mapped[list["Certificato"]] = relationship(back_populates="socio", cascade="all, delete-orphan")
    noleggi: Mapped[list["Noleggio"]] = relationship(back_populates="socio", cascade="all, delete-orphan")
    pacchetti_piscina: Mapped[list["PacchettoPiscina"]] = relationship(
        back_populates="socio", cascade="all, delete-orphan"
    )
    presenze_piscina: Mapped[list["PresenzaPiscina"]] = relationship(
        back_populates="socio", cascade="all, delete-orphan"
    )
    # riferimenti opzionali: alla cancellazione la FK viene azzerata
    bombole: Mapped[list["Bombola"]] = relationship(back_populates="proprietario")
    ricariche: Mapped[list["RicaricaCompressore"]] = relationship(back_populates="addetto")

    @property
    def nome_completo(self) -> str:
        return f"{self.nome} {self.cognome}"

    def __repr__(self) -> str:
        return f"Socio({self.nome} {self.cognome})"


# =========================
# Bombole e revisioni
# =========================
class Bombola(Base):
    __tablename__ = "bombole"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    proprietario_id: Mapped[int | None] = mapped_column(ForeignKey("soci.id"), nullable=True)  # NULL = del club
    matricola: Mapped[str] = mapped_column(String(60), nullable=False)
    codice: Mapped[int | None] = mapped_column(Integer, nullable=True)
    etichetta: Mapped[str | None] = mapped_column(String(60), nullable=True)
    volume: Mapped[str] = mapped_column(String(20), nullable=False)
    marca: Mapped[str | None] = mapped_column(String(60), nullable=True)
    attacco: Mapped[str | None] = mapped_column(String(40), nullable=True)
    rubinetto: Mapped[str | None] = mapped_column(String(40), nullable=True)
    materiale: Mapped[str | None] = mapped_column(String(40), nullable=True)
    nota: Mapped[str | None] = mapped_column(Text, nullable=True)
    foto: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stato_revisione: Mapped[str | None] = mapped_column(String(60), nullable=True)
    dismessa: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ultima_revisione: Mapped[date | None] = mapped_column(Date, nullable=True)

    proprietario: Mapped["Socio"] = relationship(back_populates="bombole")
    revisioni: Mapped[list["RevisioneDettaglio"]] = relationship(
        back_populates="bombola", cascade="all, delete-orphan"
    )


class Revisione(Base):
    """Sessione di collaudo: un gruppo di bombole portate insieme al centro revisione."""
    __tablename__ = "revisioni"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    data_bombole_pronte: Mapped[date] = mapped_column(Date, nullable=False)
    data_collaudo: Mapped[date] = mapped_column(Date, nullable=False)
    luogo: Mapped[str | None] = mapped_column(String(120), nullable=True)
    centro_revisione: Mapped[str] = mapped_column(String(120), nullable=False)
    costo_revisione: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    arrotondamento: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    stato: Mapped[StatoRevisione] = mapped_column(
        Enum(StatoRevisione, values_callable=_enum_values),
        default=StatoRevisione.DA_PREPARARE,
        nullable=False,
    )
    certificato: Mapped[str | None] = mapped_column(String(255), nullable=True)
    data_revisione_terminata: Mapped[date | None] = mapped_column(Date, nullable=True)

    dettagli: Mapped[list["RevisioneDettaglio"]] = relationship(
        back_populates="revisione", cascade="all, delete-orphan"
    )


class RevisioneDettaglio(Base):
    __tablename__ = "revisioni_dettaglio"
    __table_args__ = (UniqueConstraint("revisione_id", "bombola_id", name="uq_rev_bombola"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    revisione_id: Mapped[int] = mapped_column(ForeignKey("revisioni.id"), nullable=False)
    bombola_id: Mapped[int] = mapped_column(ForeignKey("bombole.id"), nullable=False)
    esito: Mapped[EsitoRevisione] = mapped_column(
        Enum(EsitoRevisione, values_callable=_enum_values),
        default=EsitoRevisione.IN_ATTESA,
        nullable=False,
    )
    pagato: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    revisione: Mapped["Revisione"] = relationship(back_populates="dettagli")
    bombola: Mapped["Bombola"] = relationship(back_populates="revisioni")


# =========================
# Compressore
# =========================
class RicaricaCompressore(Base):
    __tablename__ = "ricariche_compressore"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    data: Mapped[date | None] = mapped_column(Date, nullable=True)
    mono: Mapped[int | None] = mapped_column(Integer, nullable=True)
    bibo: Mapped[int | None] = mapped_column(Integer, nullable=True)
    lettura_finale: Mapped[float | None] = mapped_column(Float, nullable=True)  # ore di funzionamento
    addetto_id: Mapped[int | None] = mapped_column(ForeignKey("soci.id"), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    addetto: Mapped["Socio"] = relationship(back_populates="ricariche")


# =========================
# Certificati medici
# =========================
class Certificato(Base):
    __tablename__ = "certificati"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    socio_id: Mapped[int] = mapped_column(ForeignKey("soci.id"), nullable=False)
    attivita_subacquea: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    data_visita: Mapped[date] = mapped_column(Date, nullable=False)
    data_scadenza: Mapped[date | None] = mapped_column(Date, nullable=True)
    pdf: Mapped[str | None] = mapped_column(String(255), nullable=True)

    socio: Mapped["Socio"] = relationship(back_populates="certificati")


# =========================
# Inventario e noleggi
# =========================
class ArticoloInventario(Base):
    __tablename__ = "inventario"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descrizione: Mapped[str | None] = mapped_column(Text, nullable=True)
    categoria: Mapped[str | None] = mapped_column(String(60), nullable=True)
    stato: Mapped[str | None] = mapped_column(String(60), nullable=True)
    posizione: Mapped[str | None] = mapped_column(String(120), nullable=True)
    valore_attuale: Mapped[int | None] = mapped_column(Integer, nullable=True)  # centesimi di euro
    distrutto: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    noleggiabile: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    foto: Mapped[str | None] = mapped_column(String(255), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    righe_noleggio: Mapped[list["NoleggioDettaglio"]] = relationship(back_populates="articolo")


class Noleggio(Base):
    __tablename__ = "noleggi"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    socio_id: Mapped[int] = mapped_column(ForeignKey("soci.id"), nullable=False)
    data_inizio: Mapped[date] = mapped_column(Date, nullable=False)
    data_fine_prevista: Mapped[date] = mapped_column(Date, nullable=False)
    data_restituzione: Mapped[date | None] = mapped_column(Date, nullable=True)
    stato: Mapped[StatoNoleggio] = mapped_column(
        Enum(StatoNoleggio, values_callable=_enum_values), default=StatoNoleggio.ATTIVO, nullable=False
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    socio: Mapped["Socio"] = relationship(back_populates="noleggi")
    righe: Mapped[list["NoleggioDettaglio"]] = relationship(back_populates="noleggio", cascade="all, delete-orphan")


class NoleggioDettaglio(Base):
    __tablename__ = "noleggi_dettaglio"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    noleggio_id: Mapped[int] = mapped_column(ForeignKey("noleggi.id"), nullable=False)
    articolo_id: Mapped[int] = mapped_column(ForeignKey("inventario.id"), nullable=False)
    quantita: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    noleggio: Mapped["Noleggio"] = relationship(back_populates="righe")
    articolo: Mapped["ArticoloInventario"] = relationship(back_populates="righe_noleggio")


# =========================
# Piscina
# =========================
class PacchettoPiscina(Base):
    __tablename__ = "pacchetti_piscina"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    socio_id: Mapped[int] = mapped_column(ForeignKey("soci.id"), nullable=False)
    data_acquisto: Mapped[date] = mapped_column(Date, nullable=False)
    ingressi_totali: Mapped[int] = mapped_column(Integer, default=5, nullable=False)
    ingressi_usati: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    data_scadenza: Mapped[date] = mapped_column(Date, nullable=False)
    attivo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    socio: Mapped["Socio"] = relationship(back_populates="pacchetti_piscina")

    @property
    def ingressi_residui(self) -> int:
        return self.ingressi_totali - self.ingressi_usati


class PresenzaPiscina(Base):
    __tablename__ = "presenze_piscina"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    socio_id: Mapped[int] = mapped_column(ForeignKey("soci.id"), nullable=False)
    data_presenza: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    orario_ingresso: Mapped[time] = mapped_column(Time, nullable=False)
    tipo_ingresso: Mapped[TipoIngresso] = mapped_column(
        Enum(TipoIngresso, values_callable=_enum_values), nullable=False
    )
    pagato: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    importo: Mapped[float | None] = mapped_column(Float, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    # pacchetto da cui è stato scalato l'ingresso (solo abbonamento)
    pacchetto_id: Mapped[int | None] = mapped_column(ForeignKey("pacchetti_piscina.id"), nullable=True)

    socio: Mapped["Socio"] = relationship(back_populates="presenze_piscina")


# =========================
# Vestiario
# =========================
class CapoVestiario(Base):
    __tablename__ = "vestiario"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    descrizione: Mapped[str] = mapped_column(String(160), nullable=False)
    qta: Mapped[int | None] = mapped_column(Integer, nullable=True)
    taglia: Mapped[str | None] = mapped_column(String(20), nullable=True)
    colore: Mapped[str | None] = mapped_column(String(40), nullable=True)
    prezzo: Mapped[float | None] = mapped_column(Float, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    foto: Mapped[str | None] = mapped_column(String(255), nullable=True)
    attivo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
