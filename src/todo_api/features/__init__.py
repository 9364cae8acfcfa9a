"""Feature routers."""
