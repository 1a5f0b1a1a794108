"""
Runtime context for a guestbook client session.
"""

from dataclasses import dataclass
from typing import Optional

from guestledger.client.coordinator import SubmissionCoordinator
from guestledger.config import GuestLedgerConfig
from guestledger.core.crypto import Ed25519KeyManager
from guestledger.ledger.ledger import LedgerStore
from guestledger.settlement.engine import SettlementEngine, SettlementPolicy


@dataclass
class RuntimeContext:
    """One connected session: ledger, settlement engine and coordinator."""

    config:      GuestLedgerConfig
    ledger:      LedgerStore
    settlement:  SettlementEngine
    coordinator: SubmissionCoordinator
    key_manager: Optional[Ed25519KeyManager] = None

    @classmethod
    def from_config(
        cls,
        config:    GuestLedgerConfig,
        autostart: bool = True,
    ) -> "RuntimeContext":
        """
        Build and connect every component described by config.

        A key_path that does not exist yet gets a freshly generated key.
        """
        key_manager = None
        if config.key_path is not None:
            key_manager = Ed25519KeyManager.load_or_create(config.key_path)

        ledger = LedgerStore(path=config.ledger_path, signing_key=key_manager)
        settlement = SettlementEngine(
            ledger,
            policy=SettlementPolicy(
                max_author_length=config.max_author_length,
                max_body_length=config.max_body_length,
            ),
            settle_delay=config.settle_delay,
            autostart=autostart,
        ).connect()
        coordinator = SubmissionCoordinator(
            settlement,
            reader=ledger,
            timeout=config.submission_timeout,
            retain_history=config.retain_history,
        )

        return cls(
            config=config,
            ledger=ledger,
            settlement=settlement,
            coordinator=coordinator,
            key_manager=key_manager,
        )

    def close(self) -> None:
        """Settle in-flight writes, then detach the coordinator."""
        self.settlement.close()
        self.coordinator.close()

    def __enter__(self) -> "RuntimeContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"RuntimeContext("
            f"ledger={self.config.ledger_path!s}, "
            f"ledger_entries={len(self.ledger)})"
        )
