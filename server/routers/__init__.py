"""API routers for the Cribbage table server."""
