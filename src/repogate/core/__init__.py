"""Core data models shared across RepoGate."""
