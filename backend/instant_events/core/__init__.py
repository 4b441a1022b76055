"""Core Layer: pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, infrastructure/, models/ or db/
    - Functions are pure and deterministic (time is always passed in)

Design Decisions:
    - Functional core separated from imperative shell: transaction bodies in
      services/ call into these functions between store reads and writes
"""
