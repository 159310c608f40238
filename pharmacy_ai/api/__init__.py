"""
API module - FastAPI routes and HTTP handling.

This module handles:
- Request validation and parsing
- Response formatting
- Error handling
- Route definitions

The app itself lives in pharmacy_ai.api.main (uvicorn pharmacy_ai.api.main:app).
"""
