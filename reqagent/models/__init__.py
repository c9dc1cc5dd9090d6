"""Record models shared with the configuration/record store."""
