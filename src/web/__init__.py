"""HTTP surface of the admin backend."""
