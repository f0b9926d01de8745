"""
Caseflow Kernel - dental case workflow engine

A status workflow for multi-party review of treatment cases with:
- Role- and capability-gated transitions from a static table
- Compare-and-swap status updates (no lost updates)
- Append-only audit log that replays to the current status
- Refinement counting for every rejection
"""

__version__ = "0.1.0"
