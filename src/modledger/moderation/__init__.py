"""
Moderation core, independent of the Discord client.

- **spam_detector.py**: Per-author message windows and near-duplicate detection
- **collaborators.py**: Interfaces for DMs, mod log, capability checks and
  guild actions
- **action_executor.py**: Applies an auto-mod action list and records one case
- **automod_pipeline.py**: Spam, word and invite filter stages in fixed order
- **escalation.py**: Warning thresholds and the actions they trigger
- **modlog.py**: Case embed rendering
"""
