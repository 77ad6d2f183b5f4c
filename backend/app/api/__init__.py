"""HTTP route modules for the tasks API."""
