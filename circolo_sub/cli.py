from __future__ import annotations

import argparse
import sys

from .auth_service import assegna_ruolo, crea_utente, lista_ruoli, lista_utenti_con_ruolo
from .config import configure_logging
from .db import init_db
from .errors import NonTrovato
from .roles import GERARCHIA, normalizza_ruolo
from .seed import seed_base
from .services import bombole, certificati, soci


def _role_id(nome: str) -> int:
    ruolo = normalizza_ruolo(nome)
    for r in lista_ruoli():
        if ruolo is not None and normalizza_ruolo(r["name"]) == ruolo:
            return r["id"]
    raise ValueError(f"Ruolo sconosciuto: {nome}")


def _user_id(email: str) -> str:
    email = email.strip().lower()
    for u in lista_utenti_con_ruolo():
        if u.email == email:
            return u.id
    raise NonTrovato(f"Utente non trovato: {email}")


def cmd_init(args: argparse.Namespace) -> None:
    init_db()
    seed_base()
    print("DB inizializzato e seed completato.")


def cmd_crea_utente(args: argparse.Namespace) -> None:
    uid = crea_utente(args.email, args.password, _role_id(args.ruolo))
    print(f"Utente creato: {uid} ({args.email}, {args.ruolo})")


def cmd_assegna_ruolo(args: argparse.Namespace) -> None:
    assegna_ruolo(_user_id(args.email), _role_id(args.ruolo))
    print(f"Ruolo di {args.email} impostato a {args.ruolo}.")


def cmd_list(args: argparse.Namespace) -> None:
    if args.entity == "utenti":
        for u in lista_utenti_con_ruolo():
            print(f"{u.id} | {u.email} | {u.role_name or '(nessun ruolo: Socio)'}")
    elif args.entity == "soci":
        for p in soci.lista_soci():
            stato = "attivo" if p["attivo"] else "non attivo"
            print(f"{p['id']} | {p['cognome']} {p['nome']} | {p['email'] or '-'} | {stato}")
    elif args.entity == "bombole":
        out = bombole.lista_bombole("tutte")
        for b in out["bombole"]:
            print(f"{b['id']} | {b['matricola']} | {b['volume']} | {b['proprietario'] or 'club'} | "
                  f"ultima revisione: {b['ultima_revisione'] or '-'}")
        st = out["stats"]
        print(f"Totale {st['totale']}, attive {st['attive']}, da revisionare {st['da_revisionare']}")
    elif args.entity == "ruoli":
        for r in lista_ruoli():
            print(f"{r['id']} | {r['name']}")


def cmd_certificati(args: argparse.Namespace) -> None:
    """Stampa l'ultimo certificato di ogni socio con lo stato di validità."""
    out = certificati.lista_certificati(stato=args.stato)
    if not out["certificati"]:
        print("Nessun certificato.")
        return
    for c in out["certificati"]:
        print(f"{c['socio']} | visita {c['data_visita']} | scadenza {c['data_scadenza'] or '-'} | {c['stato']}")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="circolo_sub_cli", description="CLI amministrativa Circolo Sub")
    sub = p.add_subparsers(required=True)
    ruoli = [r.value for r in GERARCHIA]

    p_init = sub.add_parser("init", help="Crea DB e carica seed")
    p_init.set_defaults(func=cmd_init)

    p_user = sub.add_parser("crea-utente", help="Crea un utente con ruolo")
    p_user.add_argument("--email", required=True)
    p_user.add_argument("--password", required=True)
    p_user.add_argument("--ruolo", default="Socio", choices=ruoli)
    p_user.set_defaults(func=cmd_crea_utente)

    p_role = sub.add_parser("assegna-ruolo", help="Cambia il ruolo di un utente")
    p_role.add_argument("--email", required=True)
    p_role.add_argument("--ruolo", required=True, choices=ruoli)
    p_role.set_defaults(func=cmd_assegna_ruolo)

    p_list = sub.add_parser("list", help="Lista entità")
    p_list.add_argument("entity", choices=["utenti", "soci", "bombole", "ruoli"])
    p_list.set_defaults(func=cmd_list)

    p_cert = sub.add_parser("certificati", help="Scadenze certificati medici")
    p_cert.add_argument("--stato", default=None, choices=list(certificati.STATI))
    p_cert.set_defaults(func=cmd_certificati)

    return p


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    init_db()  # garantisce tabelle
    seed_base()
    try:
        args.func(args)
    except (ValueError, LookupError) as e:
        print(f"Errore: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
