"""WebSocket transport for the Fodinha session server."""
