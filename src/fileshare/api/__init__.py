"""HTTP adapter over the fileshare core."""
