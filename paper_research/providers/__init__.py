"""Scholarly metadata providers."""
