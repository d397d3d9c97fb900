"""Domain models for verification results, polling sessions and component ownership."""
