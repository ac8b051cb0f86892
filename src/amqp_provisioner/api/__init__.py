"""Remote API client, retrying invoker and read services."""
