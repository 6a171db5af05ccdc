"""Fuentes de reglas de intervención (memoria, fichero JSON)."""
