"""External data sources and the interfaces the phases depend on."""
