"""Local audio capture."""
