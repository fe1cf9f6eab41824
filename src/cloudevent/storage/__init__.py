"""Index and object storage backends."""
