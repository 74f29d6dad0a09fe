"""Backend implementations: embeddings, chat providers, streaming adapter, vector stores."""
