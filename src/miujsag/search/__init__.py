"""Query construction and response normalization."""
