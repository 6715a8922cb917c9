"""Write path of the retrieval pipeline: extract, chunk, embed, replace."""
