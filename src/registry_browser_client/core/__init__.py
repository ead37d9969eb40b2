"""Core auth, transport and configuration building blocks."""
