"""
auth/notify.py -- Recovery-link delivery collaborator.

The controller hands the raw recovery token to a RecoveryNotifier and moves
on; delivery failures are the notifier's concern. LogRecoveryNotifier is the
default and only records that a link was issued (it never logs the token).
A mail-sending implementation plugs in through the same protocol.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("accessadmin.auth.notify")


class RecoveryNotifier(Protocol):
    def send_recovery_link(self, email: str, token: str) -> None: ...


class LogRecoveryNotifier:
    """Stand-in delivery channel: logs the event instead of sending mail."""

    def send_recovery_link(self, email: str, token: str) -> None:
        logger.info("Recovery link issued for %s (delivery simulated)", email)
