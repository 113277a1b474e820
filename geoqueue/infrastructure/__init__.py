"""GeoQueue Infrastructure - GPS source, local storage and location uplink."""
