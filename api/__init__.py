"""HTTP API and job subsystem."""
