"""Spotlink realtime core."""
