"""Shared helpers: storage, performance profiles, recording, drawing."""
