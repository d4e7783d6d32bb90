"""Application layer: datasource contracts consumed by callers."""
