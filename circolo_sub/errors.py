class NonTrovato(LookupError):
    """Record richiesto inesistente (mappato su HTTP 404)."""
