"""
Shared helpers for modledger.

- **logger.py**: Named loggers writing to a prompt_toolkit console handler
  and a per-session log file under ``./logs``.
- **duration.py**: Parser and formatter for ``1h30m``-style durations.
"""
