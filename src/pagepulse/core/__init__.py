"""Core domain: event model, sink, instrumentation and aggregation."""
