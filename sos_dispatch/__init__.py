"""SOS alert dispatch and volunteer matching service."""
