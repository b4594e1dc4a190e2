"""Fare cache and its storage tiers."""
