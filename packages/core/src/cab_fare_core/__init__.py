"""Shared schemas for the cab fare engine."""
