"""Services Layer: aggregate managers and the public InstantEventService facade.

Invariants:
    - Every operation runs as exactly one store transaction
    - Transaction bodies perform no logging or other external side effects

Design Decisions:
    - One manager file per aggregate concern for locality (event, thread, replies)
"""
