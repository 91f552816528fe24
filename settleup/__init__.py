"""SettleUp — group expense ledger and settlement engine."""
