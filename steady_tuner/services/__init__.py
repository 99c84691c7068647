"""Host-side services: audio sources and the polling loop."""
