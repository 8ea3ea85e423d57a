"""GreenKeep sync server."""
