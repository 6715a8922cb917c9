"""Application services: ingestion, retrieval, answer assembly, and the
initiative workflow around them."""
