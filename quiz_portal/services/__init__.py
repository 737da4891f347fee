"""Service layer: plain functions over a database session."""
