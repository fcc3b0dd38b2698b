"""Command-line interface for txn-stress-test."""
