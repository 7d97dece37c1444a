"""
Gestionale Circolo Sub.

Struttura:
- config.py        : configurazione da variabili d'ambiente (.env) e logging
- db.py            : engine e sessioni SQLAlchemy
- roles.py         : gerarchia ruoli Admin > Consiglio > Staff > Socio e controllo accessi
- auth_*.py        : utenti, password, JWT, assegnazione ruoli
- models.py        : modelli ORM e enum del dominio
- services/        : logica di dominio per area (soci, bombole, piscina, ...)
- storage.py       : file privati su disco e URL firmate
- seed.py          : dati iniziali (ruoli, brevetti, tipi socio)
- api_main.py      : API REST FastAPI
- cli.py           : comandi amministrativi
"""
