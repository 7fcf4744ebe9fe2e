"""Research-gathering pipeline."""
