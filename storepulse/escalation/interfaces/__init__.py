"""
Escalation Interfaces Layer
===========================

Interface adapters (controllers) for the escalation module.

Contains:
- Controllers: FastAPI route handlers

This is the outermost layer - handles HTTP requests/responses and
delegates to application services.
"""

from storepulse.escalation.interfaces.controllers import escalation_router

__all__ = ["escalation_router"]
