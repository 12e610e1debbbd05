"""
Ledger configuration. Defaults suit tests; from_env() reads deployment settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from spotledger.portfolio import EPSILON

DB_PATH_ENV = "SPOTLEDGER_DB_PATH"
EPSILON_ENV = "SPOTLEDGER_EPSILON"
REQUIRE_CASH_FOR_BUYS_ENV = "SPOTLEDGER_REQUIRE_CASH_FOR_BUYS"
PROPAGATE_CASCADE_ERRORS_ENV = "SPOTLEDGER_PROPAGATE_CASCADE_ERRORS"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() == "true"


@dataclass(frozen=True)
class LedgerConfig:
    """
    epsilon: absolute tolerance for sufficiency checks.
    db_path: SQLite file for the stores; None keeps everything in memory.
    require_cash_for_buys: reject buys whose cost plus fee exceeds the cash balance.
    propagate_cascade_errors: re-raise journal store failures during trade deletion
        instead of logging them. A journal entry that is already gone is never an error.
    """

    epsilon: float = EPSILON
    db_path: str | None = None
    require_cash_for_buys: bool = True
    propagate_cascade_errors: bool = False

    @classmethod
    def from_env(cls) -> LedgerConfig:
        eps_raw = os.environ.get(EPSILON_ENV)
        epsilon = float(eps_raw) if eps_raw else EPSILON
        if epsilon < 0:
            raise ValueError(f"{EPSILON_ENV} must be >= 0, got {epsilon}")
        return cls(
            epsilon=epsilon,
            db_path=os.environ.get(DB_PATH_ENV) or None,
            require_cash_for_buys=_env_flag(REQUIRE_CASH_FOR_BUYS_ENV, True),
            propagate_cascade_errors=_env_flag(PROPAGATE_CASCADE_ERRORS_ENV, False),
        )
