"""Candidate ideation: per-tier generation, critic evaluation and the ideation pipeline."""
