"""Utility helpers for Volt Load Manager."""
