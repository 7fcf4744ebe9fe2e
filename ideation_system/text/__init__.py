"""Text utilities for tokenizing, comparing and canonicalizing content."""
