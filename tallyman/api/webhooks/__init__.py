"""HTTP resources for webhook deliveries and duplicate cleanup."""
