"""Index lifecycle, normalization and deduplicating writes."""
