"""Provider adapters and the report generation pipeline."""
