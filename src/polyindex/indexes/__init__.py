"""Index logic: market filter, curated generation, membership and CRUD operations."""
