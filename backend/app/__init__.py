"""Todo tasks backend application package."""
