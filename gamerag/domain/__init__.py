"""Domain layer - records, contracts and errors shared by every other layer."""
