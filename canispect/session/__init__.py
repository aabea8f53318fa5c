"""Session layer: identities, storage, provider channels and the session manager."""
