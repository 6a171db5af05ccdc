"""Clientes externos: feeds de precio y bus de eventos."""
