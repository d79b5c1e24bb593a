"""Small helpers shared across driveup."""
