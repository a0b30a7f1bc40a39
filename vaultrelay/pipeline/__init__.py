"""Relay orchestrator: observes vault intents and submits authenticated sends."""
