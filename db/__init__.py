"""Database module for the entity store."""
