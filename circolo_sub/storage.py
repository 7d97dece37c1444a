"""
Storage privato su disco, organizzato in bucket.

I file non sono mai serviti direttamente: si ottiene una URL firmata a tempo
(`crea_signed_url`) che l'endpoint /api/files verifica prima di restituire l'oggetto.
"""
from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterator
from urllib.parse import quote

from .auth_security import create_file_token, verify_file_token
from .config import SIGNED_URL_TTL_SECONDS, STORAGE_DIR
from .errors import NonTrovato

logger = logging.getLogger(__name__)

BUCKETS = ("Avatar", "Bombole", "Certificati", "Inventario", "Revisioni", "Vestiario")

MAX_IMMAGINE_BYTES = 5 * 1024 * 1024


def _percorso(bucket: str, path: str) -> Path:
    if bucket not in BUCKETS:
        raise PermissionError("Bucket non consentito.")
    p = PurePosixPath(path)
    if not path or p.is_absolute() or ".." in p.parts:
        raise ValueError("Percorso file non valido.")
    return STORAGE_DIR / bucket / p


def nome_file(prefisso: str, filename: str | None, default_ext: str = "jpg") -> str:
    """Nome univoco nel bucket: <prefisso>_<timestamp ms>_<suffisso>.<ext>"""
    ext = default_ext
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[-1].lower() or default_ext
    return f"{prefisso}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:6]}.{ext}"


def valida_immagine(content_type: str | None, size: int) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise ValueError("Seleziona un file immagine.")
    if size > MAX_IMMAGINE_BYTES:
        raise ValueError("Immagine max 5MB.")


def valida_pdf(content_type: str | None) -> None:
    if not content_type or "pdf" not in content_type:
        raise ValueError("Il file deve essere un PDF.")


def salva(bucket: str, path: str, data: bytes) -> str:
    dest = _percorso(bucket, path)
    if dest.exists():
        raise ValueError("File già esistente.")
    dest.parent.mkdir(parents=True, exist_ok=True)
    dest.write_bytes(data)
    logger.info("Salvato %s/%s (%d byte)", bucket, path, len(data))
    return path


def rimuovi(bucket: str, path: str | None) -> None:
    if not path:
        return
    dest = _percorso(bucket, path)
    if dest.exists():
        dest.unlink()
        logger.info("Rimosso %s/%s", bucket, path)


@dataclass
class Sostituzione:
    bucket: str
    vecchio: str | None = None
    nuovo: str | None = None

    def carica(self, vecchio: str | None, nuovo: str, data: bytes) -> str:
        self.vecchio = vecchio
        self.nuovo = salva(self.bucket, nuovo, data)
        return self.nuovo


@contextmanager
def sostituzione(bucket: str) -> Iterator[Sostituzione]:
    """
    Da usare attorno alla db_session che aggiorna il riferimento al file:
    il vecchio file si elimina solo a commit avvenuto, se il blocco fallisce
    si elimina il nuovo.
    """
    op = Sostituzione(bucket)
    try:
        yield op
    except Exception:
        rimuovi(bucket, op.nuovo)
        raise
    if op.vecchio and op.vecchio != op.nuovo:
        rimuovi(bucket, op.vecchio)

def esiste(bucket: str, path: str) -> bool:
    return _percorso(bucket, path).is_file()


def leggi_percorso(bucket: str, path: str, token: str) -> Path:
    """Percorso su disco dell'oggetto, se il token è valido per bucket/path."""
    if not verify_file_token(token, bucket, path):
        raise PermissionError("URL firmata non valida o scaduta.")
    dest = _percorso(bucket, path)
    if not dest.is_file():
        raise NonTrovato("File non trovato.")
    return dest


def crea_signed_url(bucket: str, path: str, ttl_seconds: int = SIGNED_URL_TTL_SECONDS) -> str:
    if not esiste(bucket, path):
        raise NonTrovato("File non trovato.")
    token = create_file_token(bucket, path, ttl_seconds)
    return f"/api/files/{quote(bucket)}/{quote(path)}?token={token}"
