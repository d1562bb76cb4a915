"""
Discord client integration.

- **discord_adapters.py**: py-cord implementations of the moderation
  collaborator interfaces
- **runtime.py**: Builds the moderation components for a bot instance
"""
