"""Core pipeline: finding schema, file corpus, ecosystem, dedup, orchestration, reporting."""
