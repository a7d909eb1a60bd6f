"""
Durable Job Queue

A priority-ordered job queue backed by a single SQL table, offering atomic
claim-based dispatch to competing workers, idempotent submission, bounded
automatic retry, and crash recovery via lock expiry.
"""

__version__ = "1.0.0"
