"""
Logica di dominio del circolo, un modulo per area:
- soci.py        : anagrafica soci, brevetti, tipi socio, dashboard, profilo
- compressore.py : registro ricariche compressore
- bombole.py     : parco bombole
- revisioni.py   : sessioni di collaudo bombole
- certificati.py : certificati medici e scadenze
- inventario.py  : asset del club
- noleggi.py     : noleggio attrezzatura
- piscina.py     : pacchetti ingressi e presenze in piscina
- vestiario.py   : magazzino abbigliamento
"""
