"""Adaptadores concretos: feeds de precio, fuentes de reglas, persistencia."""
