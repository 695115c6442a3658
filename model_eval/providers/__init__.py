"""Provider adapters: the contract, tool formatting, and offline implementations."""
