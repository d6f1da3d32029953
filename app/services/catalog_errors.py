from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class CatalogError(Exception):
    """Domain-specific exception raised by catalog operations.

    ``code`` is a stable machine-readable identifier that routers forward as
    the HTTP ``detail``; ``context`` carries optional extra data (for
    instance the number of active resources blocking a skill deletion).
    """

    code: str
    status_code: int = 400
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:  # pragma: no cover - human readable message
        return self.code


def skill_not_found() -> CatalogError:
    return CatalogError("skill_not_found", status_code=404)


def resource_not_found() -> CatalogError:
    return CatalogError("resource_not_found", status_code=404)
