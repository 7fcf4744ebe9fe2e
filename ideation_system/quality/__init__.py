"""Quality gates and research sufficiency checks."""
