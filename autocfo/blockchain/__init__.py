"""Chain access for the treasury agent."""
