"""Scheduling for Volt Load Manager."""
