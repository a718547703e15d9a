"""Routed views rendered inside the application shell."""
