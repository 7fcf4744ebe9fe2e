"""Text-generation service adapters and response parsing."""
