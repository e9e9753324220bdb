"""
connectors: linked Google Drive accounts.

Handles:
  • signed, single-use OAuth state (CSRF + replay protection)
  • callback code → token exchange and account linking
  • Fernet encryption of tokens at rest
  • token rotation captured from live provider calls
  • revocation detection and the reconnect-required error path
  • per-account file statistics
"""
