"""Core utilities for the Spotlink backend."""
