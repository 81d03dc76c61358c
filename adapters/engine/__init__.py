"""
EATME Engine Adapter
======================
External interface of the engine and its composition root.
"""

from adapters.engine.facade import EatmeEngine
from adapters.engine.wiring import build_engine, build_engine_from_settings

__all__ = ["EatmeEngine", "build_engine", "build_engine_from_settings"]
