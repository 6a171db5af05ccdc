"""
CandleForge – JSON File Rule Source
=====================================
Lee reglas de un fichero JSON: una lista de reglas, o un objeto con la
clave "rules" (o "interventions", formato de exportación de la consola).

- Fichero ausente, ilegible o JSON corrupto → RuleSourceError (el store
  conserva el RuleSet anterior).
- Una regla individual que no pasa el schema se registra y se omite; las
  demás se cargan igualmente.
- La lectura de disco se hace en un thread (asyncio.to_thread) para no
  bloquear el event loop.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Sequence

from pydantic import ValidationError

from candleforge.domain.entities.intervention_rule import InterventionRule
from candleforge.domain.exceptions.domain_errors import RuleSourceError
from candleforge.domain.repositories.rule_source import IRuleSource
from candleforge.infrastructure.rules.schemas import RuleSchema
from candleforge.shared.logging.logger import get_logger

logger = get_logger("file_rule_source")


def parse_rule_document(document: Any) -> list[InterventionRule]:
    """Documento JSON ya decodificado → reglas válidas según el schema."""
    if isinstance(document, dict):
        items = document.get("rules", document.get("interventions", []))
    else:
        items = document
    if not isinstance(items, list):
        raise RuleSourceError("El documento de reglas debe contener una lista")

    rules: list[InterventionRule] = []
    for index, raw in enumerate(items):
        try:
            rules.append(RuleSchema.model_validate(raw).to_entity())
        except ValidationError as exc:
            logger.warning(
                "Regla #%d descartada por schema inválido: %d errores (%s)",
                index,
                exc.error_count(),
                exc.errors()[0].get("msg", "?"),
            )
    return rules


class JsonFileRuleSource(IRuleSource):
    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    async def fetch_rules(self) -> Sequence[InterventionRule]:
        try:
            text = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise RuleSourceError(f"No se pudo leer {self._path}: {exc}") from exc
        try:
            document = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RuleSourceError(f"JSON inválido en {self._path}: {exc}") from exc
        return parse_rule_document(document)
