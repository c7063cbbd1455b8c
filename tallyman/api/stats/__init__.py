"""HTTP resources for the read-side statistics endpoints."""
