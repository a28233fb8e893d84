"""Lightweight data-access facade — one self-healing connection, async writes."""

from sqlutil.config import AppConfig, EngineKind
from sqlutil.facade import SQLUtil, get_sqlutil, init_sqlutil

__all__ = ["AppConfig", "EngineKind", "SQLUtil", "get_sqlutil", "init_sqlutil"]
