"""Calculation modules for Volt Load Manager."""
