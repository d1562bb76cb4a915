"""
Plain data types shared across modledger.

- **discord_datatypes.py**: Snowflake wrappers (``UserID``, ``GuildID``, ...),
  ``MessageRef`` and ``UserRef``.
- **case_datatypes.py**: ``CaseType``, ``NewCase``, ``Case`` and ``CaseStats``.
- **action_datatypes.py**: Closed enums for auto-mod and escalation actions,
  ``ThresholdAction`` and ``PipelineOutcome``.
"""
