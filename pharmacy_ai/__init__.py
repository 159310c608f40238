"""
Pharmacy AI gateway.

This package contains all application source code organized by responsibility:
- api/       : FastAPI routes and HTTP handling
- core/      : Configuration, logging, errors and request safety
- llm/       : Gemini client and the reliability runtime
- services/  : Chat and prescription features
- models/    : Pydantic models for request/response schemas
"""
__version__ = "0.1.0"
