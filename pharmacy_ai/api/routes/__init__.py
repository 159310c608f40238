"""
API Routes module - Endpoint definitions.

Each file in this module defines routes for a specific domain:
- chat.py          : Pharmacy assistant chat
- prescriptions.py : Prescription advice
- health.py        : Health checks and Gemini runtime status
"""
from pharmacy_ai.api.routes.chat import router as chat_router
from pharmacy_ai.api.routes.health import router as health_router
from pharmacy_ai.api.routes.prescriptions import router as prescriptions_router

__all__ = [
    "chat_router",
    "health_router",
    "prescriptions_router",
]
