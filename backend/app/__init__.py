"""Spotlink backend application."""
