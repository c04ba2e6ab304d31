"""Journal & Mood Service."""
