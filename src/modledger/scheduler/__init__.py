"""
Scheduled moderation work.

- **tempban_scheduler.py**: Polls the case ledger for expired tempbans, lifts
  them and records unban cases. State lives in the database, so restarts are
  transparent.
"""
