"""Search engine backends and their factory."""

from __future__ import annotations

from miujsag.config import EngineConfig
from miujsag.engine.base import BaseEngine
from miujsag.engine.elasticsearch import ElasticsearchEngine
from miujsag.engine.memory import MemoryEngine

__all__ = ["BaseEngine", "ElasticsearchEngine", "MemoryEngine", "create_engine"]


def create_engine(config: EngineConfig) -> BaseEngine:
    """Build the engine selected by `config.backend`."""
    if config.backend == "memory":
        return MemoryEngine()
    return ElasticsearchEngine(
        base_url=config.url,
        username=config.username,
        password=config.password,
        verify_ssl=config.verify_ssl,
        timeout=config.timeout,
        refresh=config.refresh,
    )
