"""Discord cogs for modledger."""
