"""PawSafety backend: chat, block, mention and notification rules."""
