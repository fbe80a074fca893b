"""HTTP API: FastAPI app, run store and response models."""
