"""Service layer for quotagate."""
