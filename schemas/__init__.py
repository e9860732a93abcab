"""Pydantic schemas shared by the HTTP server and the sync client."""
