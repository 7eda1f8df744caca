"""PayBridge: resumable incremental sync for external financial providers.

This package normalizes accounts, balances and payments from heterogeneous
providers into a common record model, with support for:
- Opaque forward-token pagination
- Numeric page + creation-time watermark pagination
- Add/modify/remove diff sync cursors
- Webhook-triggered fetches
- DuckDB-backed cursor state and record storage

Every provider adapter composes with the same exact, integer minor-unit
amount codec and asset grammar.
"""

__version__ = "0.1.0"
