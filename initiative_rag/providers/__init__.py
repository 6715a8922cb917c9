"""Concrete adapters behind the interfaces in ``initiative_rag.interfaces``."""
