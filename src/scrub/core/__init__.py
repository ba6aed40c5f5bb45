"""Safety guard, whitelist, scanner, ledger and executor."""
