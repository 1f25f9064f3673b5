"""Device controllers for Volt Load Manager."""
