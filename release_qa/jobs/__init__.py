"""Queue handling: claim, heartbeat, stuck-run reaping and run processing."""
