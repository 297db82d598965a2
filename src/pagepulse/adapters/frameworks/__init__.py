"""Web framework adapters for ingestion, instrumentation and dashboards."""
