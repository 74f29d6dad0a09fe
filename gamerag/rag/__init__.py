"""RAG pipeline: chunking, scopes, vector index, manifest, retrieval, ingestion and prompt context."""
