"""Directory package — departments and user accounts used as reference data."""
