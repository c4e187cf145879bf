"""Domain models shared by the client, endpoint modules and CLI."""
