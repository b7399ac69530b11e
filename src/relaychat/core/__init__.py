"""Relay domain: history budgeting, model catalog, wire frames, relaying."""
