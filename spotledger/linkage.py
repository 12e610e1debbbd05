"""
LinkageResolver: back-references from realized trades to journal entries.

A trade links to the journal entry that spawned it through its
journal_entry_id field, or through a "[JE:<id>]" note on older records.
Deleting the trade deletes the entry too. An entry that is already gone is
not an error, so repeated cleanup is harmless.
"""

from __future__ import annotations

import logging

from spotledger.errors import NotFound
from spotledger.records import Trade
from spotledger.storage.base import JournalStore, TransactionStore

logger = logging.getLogger(__name__)


class LinkageResolver:
    """Cascade trade deletion into the journal store."""

    def __init__(
        self,
        store: TransactionStore,
        journal: JournalStore | None = None,
        *,
        propagate_cascade_errors: bool = False,
    ) -> None:
        self.store = store
        self.journal = journal
        self.propagate_cascade_errors = propagate_cascade_errors

    def linked_entry_id(self, trade: Trade) -> str | None:
        return trade.linked_journal_entry_id

    def _delete_journal_entry(self, account_id: str, trade: Trade) -> bool:
        entry_id = self.linked_entry_id(trade)
        if entry_id is None or self.journal is None:
            return False
        try:
            deleted = self.journal.delete_by_id(account_id, entry_id)
        except Exception:  # noqa: BLE001
            if self.propagate_cascade_errors:
                raise
            logger.warning(
                "Journal entry %s linked to trade %s could not be deleted; deleting trade anyway",
                entry_id,
                trade.id,
                exc_info=True,
            )
            return False
        if not deleted:
            logger.debug("Journal entry %s linked to trade %s already absent", entry_id, trade.id)
        return deleted

    def delete_trade(
        self,
        account_id: str,
        trade_id: str,
        *,
        missing_ok: bool = False,
    ) -> Trade | None:
        """
        Delete a trade and, if linked, its journal entry.

        Raises NotFound if the trade does not exist for this account, unless
        missing_ok is set, in which case nothing changes and None is returned.
        Returns the deleted trade.
        """
        trade = self.store.get_trade(account_id, trade_id)
        if trade is None:
            if missing_ok:
                return None
            raise NotFound("trade", trade_id)
        cascaded = self._delete_journal_entry(account_id, trade)
        if not self.store.delete_trade(account_id, trade_id):
            # Removed concurrently between lookup and delete.
            if missing_ok:
                return None
            raise NotFound("trade", trade_id)
        logger.info(
            "Deleted trade %s (%s %s %s)%s",
            trade.id,
            trade.side.value,
            trade.quantity,
            trade.symbol,
            " with journal entry" if cascaded else "",
        )
        return trade
