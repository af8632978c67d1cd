# staybook/db/base.py
from __future__ import annotations

import importlib
import logging
from typing import Iterable

from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("staybook.models")


class Base(DeclarativeBase):
    """Single ORM base for every staybook table."""

    pass


_INITIALIZED: bool = False

_MODEL_MODULES = (
    "staybook.models.property",
    "staybook.models.hold",
    "staybook.models.booking",
    "staybook.models.night_claim",
    "staybook.models.payment",
    "staybook.models.ops_task",
    "staybook.models.audit_event",
)


def init_models(*, extra_modules: Iterable[str] | None = None, force: bool = False) -> None:
    """
    Import every model module so Base.metadata is complete, then configure mappers.
    Safe to call more than once.
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    loaded = 0
    for mod in [*_MODEL_MODULES, *(extra_modules or ())]:
        importlib.import_module(mod)
        loaded += 1

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", loaded)
