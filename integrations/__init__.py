"""Backend client, data sources and the push refresh bridge."""
