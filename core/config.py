"""CRAG console configuration via Pydantic settings."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenAI-compatible endpoint (LM Studio / llama.cpp server by default)
    openai_api_key: str = "api_key"
    openai_base_url: str = "http://localhost:1234/v1"
    llm_model: str = "local-model"
    embedding_model: str = "nomic-embed-text-v1.5"
    embedding_dimensions: int = Field(default=768, ge=1)
    llm_timeout: float = Field(default=60.0, gt=0)

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "crag_console_2026"
    neo4j_timeout: float = Field(default=30.0, gt=0)

    # Indexing
    pdf_path: str = "./data/sample.pdf"
    chunk_size: int = Field(default=500, ge=1)
    chunk_overlap: int = Field(default=50, ge=0)
    embedding_batch_size: int = Field(default=20, ge=1)
    temp_image_dir: str = "temp_images"

    # Image capabilities
    enable_image_processing: bool = True
    use_ocr: bool = True
    use_vision: bool = True
    vision_model: str = "gpt-4-vision-preview"
    vision_max_tokens: int = 500

    # Retrieval
    top_k: int = Field(default=3, ge=1)
    session_top_k: int = Field(default=30, ge=1)

    # Corrective RAG
    enable_corrective_rag: bool = True
    quality_strategy: Literal["llm", "heuristic"] = "llm"
    web_search_policy: Literal["always", "on_demand"] = "always"
    preview_chars: int = 200
    min_context_chars: int = 100

    # Web search (SerpAPI)
    serpapi_api_key: str = ""
    serpapi_endpoint: str = "https://serpapi.com/search.json"
    web_results: int = Field(default=3, ge=1)
    web_search_timeout: float = Field(default=10.0, gt=0)
    web_search_language: str = "en"

    # Generation
    generation_temperature: float = 0.7
    generation_max_tokens: int = 500
    fallback_answer: str = "I don't know"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
