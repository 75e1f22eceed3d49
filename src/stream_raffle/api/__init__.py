"""HTTP API for the raffle service."""
