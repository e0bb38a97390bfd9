"""Meeting synchronization: validation, dedupe, diff, apply, orchestration."""
