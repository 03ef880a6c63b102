"""Inbound message filters."""
