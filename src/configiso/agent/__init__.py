"""Image build, media server and boot orchestration."""
