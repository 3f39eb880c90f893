"""Session orchestration core for the voice assistant client."""
