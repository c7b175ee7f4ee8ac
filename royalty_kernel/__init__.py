"""
Royalty Kernel

Turns "a licensed work was played at a business" events into auditable
royalty records with:
- Multi-party revenue distribution
- Guarded payment settlement lifecycle
- LMK (collective management) reporting lifecycle gated on settlement
- Append-only per-transaction audit trail
- Time-windowed, role-scoped aggregation queries
"""

__version__ = "0.1.0"
