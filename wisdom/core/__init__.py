"""Host-side configuration and logging."""
