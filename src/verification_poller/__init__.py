"""
Verification status polling core.

Polls the document verification backend until each uploaded document has a
result, with retry/backoff, session tracking and owner-lifecycle cleanup.
"""

__version__ = "0.1.0"
