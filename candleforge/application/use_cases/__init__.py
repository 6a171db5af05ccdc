"""Casos de uso."""
