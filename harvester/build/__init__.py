"""Build collaborators — run the package build and locate its artifact."""
