"""Device-side runtime helpers (adb transport, service registry access)."""
