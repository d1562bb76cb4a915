"""
Database package for modledger.

Public API:
    - database / get_db: Global ``Database`` lifecycle coordinator
    - CaseRepo: Case ledger queries (``database.cases``)
    - db_connection: Shared aiosqlite connection manager
"""
