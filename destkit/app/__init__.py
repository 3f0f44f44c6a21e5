"""FastAPI surface for destkit."""
