"""Core configuration for the raffle service."""
