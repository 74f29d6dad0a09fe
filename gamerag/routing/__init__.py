"""Provider resolution and local/cloud chat routing."""
