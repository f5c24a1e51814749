"""Domain layer: typed Bugzilla entities and custom field handling."""
