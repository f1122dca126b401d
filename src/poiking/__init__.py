"""POI King: territory capture game backend."""
