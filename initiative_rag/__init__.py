"""initiative-rag: ingestion and grounded retrieval over civic initiatives."""
