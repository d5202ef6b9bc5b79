"""Neo4j Vector Index store for CRAG document chunks."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from neo4j import Query

from core.config import Settings, settings
from core.models import Chunk, ContentType, IndexedChunk

if TYPE_CHECKING:
    from neo4j import Driver

logger = logging.getLogger(__name__)

INDEX_NAME = "crag_chunks_index"
NODE_LABEL = "CragChunk"
EMBEDDING_PROPERTY = "embedding"


class VectorStore:
    """Neo4j-backed vector store with cosine similarity search.

    Neo4j reports a similarity score in [0, 1] where higher is closer; chunks
    leave this class with ``distance = 1 - score`` so that lower is closer.
    """

    def __init__(self, driver: Driver | None = None, cfg: Settings | None = None):
        self.cfg = cfg or settings
        self.dimensions = self.cfg.embedding_dimensions
        self.timeout = self.cfg.neo4j_timeout

        if driver is None:
            from core.clients import build_neo4j_driver

            self._driver = build_neo4j_driver(self.cfg)
        else:
            self._driver = driver

    def close(self) -> None:
        self._driver.close()

    def _query(self, text: str) -> Query:
        return Query(text, timeout=self.timeout)

    def init_index(self) -> None:
        """Create vector index in Neo4j if it doesn't exist."""
        with self._driver.session() as session:
            session.run(
                self._query(
                    f"""
                    CREATE VECTOR INDEX {INDEX_NAME} IF NOT EXISTS
                    FOR (n:{NODE_LABEL})
                    ON (n.{EMBEDDING_PROPERTY})
                    OPTIONS {{
                        indexConfig: {{
                            `vector.dimensions`: $dimensions,
                            `vector.similarity_function`: 'cosine'
                        }}
                    }}
                    """
                ),
                dimensions=self.dimensions,
            )
        logger.info("Vector index '%s' initialized (%d dims)", INDEX_NAME, self.dimensions)

    def drop_index(self) -> None:
        with self._driver.session() as session:
            session.run(self._query(f"DROP INDEX {INDEX_NAME} IF EXISTS"))
        logger.info("Vector index '%s' dropped", INDEX_NAME)

    def add_chunks(self, chunks: list[IndexedChunk]) -> int:
        """Store chunks as Neo4j nodes with embeddings. Returns count added."""
        if not chunks:
            return 0

        self._check_dimensions(chunks)
        with self._driver.session() as session:
            for index, chunk in enumerate(chunks):
                session.run(
                    self._query(
                        f"""
                        CREATE (c:{NODE_LABEL} {{id: $id}})
                        SET c.text = $text,
                            c.content_type = $content_type,
                            c.page_number = $page_number,
                            c.image_path = $image_path,
                            c.ocr_text = $ocr_text,
                            c.vision_description = $vision_description,
                            c.{EMBEDDING_PROPERTY} = $embedding
                        """
                    ),
                    id=str(index),
                    text=chunk.text,
                    content_type=chunk.content_type.value,
                    page_number=chunk.page_number,
                    image_path=chunk.image_path,
                    ocr_text=chunk.ocr_text,
                    vision_description=chunk.vision_description,
                    embedding=chunk.embedding,
                )

        logger.info("Added %d chunks to vector store", len(chunks))
        return len(chunks)

    def _check_dimensions(self, chunks: list[IndexedChunk]) -> None:
        for index, chunk in enumerate(chunks):
            if len(chunk.embedding) != self.dimensions:
                raise ValueError(
                    f"Chunk {index} has {len(chunk.embedding)} dims, "
                    f"index expects {self.dimensions}"
                )

    def replace_all(self, chunks: list[IndexedChunk]) -> int:
        """Drop previous content and index, then store ``chunks`` afresh.

        Embedding dimensions are checked before anything is deleted.
        """
        self._check_dimensions(chunks)
        self.delete_all()
        self.drop_index()
        self.init_index()
        return self.add_chunks(chunks)

    def search(self, query_embedding: list[float], top_k: int) -> list[Chunk]:
        """Return the ``top_k`` nearest chunks, closest first."""
        with self._driver.session() as session:
            result = session.run(
                self._query(
                    f"""
                    CALL db.index.vector.queryNodes(
                        '{INDEX_NAME}', $top_k, $embedding
                    )
                    YIELD node, score
                    RETURN node.id AS id,
                           node.text AS text,
                           node.content_type AS content_type,
                           node.page_number AS page_number,
                           node.image_path AS image_path,
                           score
                    ORDER BY score DESC
                    """
                ),
                top_k=top_k,
                embedding=query_embedding,
            )

            chunks = []
            for record in result:
                metadata = {"score": record["score"]}
                if record["image_path"]:
                    metadata["image_path"] = record["image_path"]
                chunks.append(
                    Chunk(
                        id=record["id"] or "",
                        text=record["text"] or "",
                        content_type=ContentType(record["content_type"] or "text"),
                        distance=1.0 - record["score"],
                        page_number=record["page_number"],
                        metadata=metadata,
                    )
                )

        return chunks

    def sample(self, limit: int = 5) -> list[dict]:
        """Return the first ``limit`` stored chunks including their embeddings."""
        with self._driver.session() as session:
            result = session.run(
                self._query(
                    f"""
                    MATCH (c:{NODE_LABEL})
                    RETURN c.id AS id,
                           c.text AS text,
                           c.content_type AS content_type,
                           c.{EMBEDDING_PROPERTY} AS embedding
                    ORDER BY toInteger(c.id)
                    LIMIT $limit
                    """
                ),
                limit=limit,
            )
            return [dict(record) for record in result]

    def delete_all(self) -> int:
        """Delete all CragChunk nodes. Returns count deleted."""
        with self._driver.session() as session:
            result = session.run(
                self._query(
                    f"""
                    MATCH (c:{NODE_LABEL})
                    WITH collect(c) AS nodes, count(c) AS total
                    FOREACH (n IN nodes | DETACH DELETE n)
                    RETURN total
                    """
                )
            )
            record = result.single()
            count = record["total"] if record else 0

        logger.info("Deleted %d chunks from vector store", count)
        return count

    def count(self) -> int:
        """Return total number of chunks."""
        with self._driver.session() as session:
            result = session.run(
                self._query(f"MATCH (c:{NODE_LABEL}) RETURN count(c) AS total")
            )
            record = result.single()
            return record["total"] if record else 0
