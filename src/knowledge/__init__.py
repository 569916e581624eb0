"""
Phase-scoped knowledge store.

Chunks semi-structured analysis output from the pipeline, embeds it and
makes it retrievable by similarity, partitioned by pipeline phase.

Key components:
- contracts/: Payload variants and chunk / result / stats models
- embedders/: Hash and lexical embedders plus the embedder factory
- providers/: Remote (OpenAI-compatible) embedder
- retrieval/: Chunker, similarity ranking and the bulk indexer
- storage/: SQLite vector store
- manager.py: KnowledgeManager, the phase-scoped API
"""

__version__ = "0.1.0"
