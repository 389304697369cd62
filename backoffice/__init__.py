"""
Back-office order lifecycle and payment reconciliation engine.
"""

__version__ = "1.0.0"
