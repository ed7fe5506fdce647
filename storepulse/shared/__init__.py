"""
Shared Kernel Module
====================

Shared infrastructure used by every bounded context (currently only
escalation): structured logging and HTTP middleware.

DO NOT add escalation business logic to the shared kernel.
"""
