"""Adapters connecting the sync core to the ledger gateway and index stores."""
