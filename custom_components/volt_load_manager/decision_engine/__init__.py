"""Decision engine modules for Volt Load Manager."""
