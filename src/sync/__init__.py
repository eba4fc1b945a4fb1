"""Reconciliation passes from Dash Core to the document store."""
