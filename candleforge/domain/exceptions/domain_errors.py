"""
CandleForge – Domain Exceptions
=================================
Excepciones del motor de intervención y velas.

Todas se contienen en el menor ámbito posible (instrumento / ciclo / regla);
solo ConfigurationError es fatal y únicamente durante el arranque.

JERARQUÍA:
    DomainError (base)
    ├── ConfigurationError
    ├── InvalidRuleError
    ├── RuleSourceError
    ├── UpstreamUnavailableError
    └── UpstreamUnconfiguredError
"""

from __future__ import annotations

from typing import Any, Optional


class DomainError(Exception):
    """Excepción base para errores de dominio."""

    def __init__(self, message: str, code: str = "DOMAIN_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
        }


class ConfigurationError(DomainError):
    """Configuración inutilizable (e.g. ningún instrumento configurado)."""

    def __init__(self, message: str, option: Optional[str] = None):
        super().__init__(message, code="CONFIGURATION_ERROR")
        self.option = option


class InvalidRuleError(DomainError):
    """Regla de intervención malformada (min > max, ventana vacía, ...)."""

    def __init__(self, message: str, rule_id: Any = None):
        super().__init__(message, code="INVALID_RULE")
        self.rule_id = rule_id

    def to_dict(self) -> dict:
        base = super().to_dict()
        base["rule_id"] = self.rule_id
        return base


class RuleSourceError(DomainError):
    """La fuente de reglas no respondió; se conserva el RuleSet anterior."""

    def __init__(self, message: str):
        super().__init__(message, code="RULE_SOURCE_ERROR")


class UpstreamUnavailableError(DomainError):
    """Fallo transitorio de un feed para UN instrumento en UN ciclo."""

    def __init__(self, message: str, instrument: str = ""):
        super().__init__(message, code="UPSTREAM_UNAVAILABLE")
        self.instrument = instrument


class UpstreamUnconfiguredError(DomainError):
    """No hay credenciales ni mapeo para el upstream de un instrumento."""

    def __init__(self, message: str, instrument: str = ""):
        super().__init__(message, code="UPSTREAM_UNCONFIGURED")
        self.instrument = instrument
