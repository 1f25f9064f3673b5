"""Entities for Volt Load Manager."""
