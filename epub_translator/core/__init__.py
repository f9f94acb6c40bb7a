"""Translation core: chunking, memory, providers, orchestration and EPUB handling."""
