"""
modledger - Discord moderation ledger and auto-moderation bot

Every moderation action becomes a numbered case in a SQLite ledger. On top of
the ledger the bot runs:

- **Auto-moderation**: spam, word and invite filters applied to every guild
  message, each with its own actions and exemptions
- **Warning escalation**: timeouts, kicks or bans once a user collects enough
  active warnings, globally or per warning category
- **Tempban expiry**: a polling scheduler that lifts temporary bans and
  records the matching unban case
- **Mod log**: case embeds posted to a configured channel

Usage:
    from modledger.main import main
    main()
"""
