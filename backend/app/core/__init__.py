"""Configuration, auth, logging, and error-handling primitives."""
