"""Infrastructure: cache, resilience, and backend implementations."""
