"""Service layer: content access, lifecycle bridge and search sync."""
