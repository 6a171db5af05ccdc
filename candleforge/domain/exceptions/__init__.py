"""Excepciones de dominio."""
from candleforge.domain.exceptions.domain_errors import (
    ConfigurationError,
    DomainError,
    InvalidRuleError,
    RuleSourceError,
    UpstreamUnavailableError,
    UpstreamUnconfiguredError,
)

__all__ = [
    "DomainError",
    "ConfigurationError",
    "InvalidRuleError",
    "RuleSourceError",
    "UpstreamUnavailableError",
    "UpstreamUnconfiguredError",
]
