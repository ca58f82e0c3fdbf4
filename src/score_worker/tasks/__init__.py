"""Score worker tasks."""
