"""Event listener and background cogs."""
