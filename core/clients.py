"""Factories for the external clients shared by pipeline components."""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.config import Settings

if TYPE_CHECKING:
    from neo4j import Driver
    from openai import OpenAI


def build_openai_client(cfg: Settings) -> OpenAI:
    """OpenAI-compatible client with a bounded timeout and no automatic retries."""
    from openai import OpenAI

    return OpenAI(
        api_key=cfg.openai_api_key,
        base_url=cfg.openai_base_url,
        timeout=cfg.llm_timeout,
        max_retries=0,
    )


def build_neo4j_driver(cfg: Settings) -> Driver:
    from neo4j import GraphDatabase

    return GraphDatabase.driver(
        cfg.neo4j_uri,
        auth=(cfg.neo4j_user, cfg.neo4j_password),
        connection_timeout=cfg.neo4j_timeout,
    )
