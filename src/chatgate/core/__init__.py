"""Core gateway concerns: errors, collaborator interfaces, rate limiting."""
