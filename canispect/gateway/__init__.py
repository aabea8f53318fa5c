"""Typed gateway operations and IDL wire marshaling."""
