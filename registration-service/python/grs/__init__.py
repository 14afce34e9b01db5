"""GitOps Registration Service."""
