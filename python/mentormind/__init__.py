"""MentorMind backend: AI study mentor chat gateway."""
