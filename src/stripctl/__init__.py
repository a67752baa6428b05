"""
Power Strip Controller (stripctl).

Connection and state-synchronization core for a networked multi-outlet
smart power strip: per-outlet switching, status polling, and recovery from
transient network failure.
"""

__version__ = "0.1.0"
