"""
Service modules of the consolidation engine.

* ``ledger`` -- single-entity chart of accounts.
* ``ownership`` -- ownership graph writes and look-through resolution.
* ``consolidation`` -- group trial balances and summaries.
* ``duplicates`` -- duplicate account detection and alert review.
* ``intercompany`` -- intercompany classification and eliminations.
"""
