"""Geographic data model, bounds helpers and route classification."""
