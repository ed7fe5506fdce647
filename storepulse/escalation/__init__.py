"""
Escalation Module
=================

Bounded Context for turning negative customer reviews into SLA-tracked tasks.

Responsibilities:
- Resolve the team lead responsible for a shop section
- Create one task per negative review (rating < 4) and start its SLA clock
- Re-evaluate the SLA status of open tasks on a schedule
- Freeze the ON_TIME / DELAYED verdict when a task is resolved
- Record every batch run in the cron log
"""

__version__ = "1.0.0"
