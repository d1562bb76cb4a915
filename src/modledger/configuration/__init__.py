"""
Application configuration for modledger.

- **app_configuration.py**: ``AppConfig`` reads ``./config/app_config.yml``
  under a shared file lock and exposes top-level settings.
- **moderation_settings.py**: Typed accessors for the ``moderation`` section
  (auto-mod filters, warning thresholds, decay, tempban polling).
"""
