"""FastAPI application serving the task and sync endpoints."""
