"""Core infrastructure: settings, errors, record store and log sink."""
