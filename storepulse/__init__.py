"""
StorePulse
==========

Retail customer-feedback escalation service: negative reviews become tasks
for the responsible team lead, and each task is tracked against a 24-hour SLA.
"""

__version__ = "1.0.0"
