"""HTTP API routes for quotagate."""
