"""Rutas y schemas de la API REST."""
