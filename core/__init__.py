"""Settings, logging, errors and time helpers shared by every layer."""
