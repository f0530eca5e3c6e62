"""Record store, token service and the resource handler groups."""
