"""Kubernetes operator for the Trillian, Fulcio, CTlog and TUF transparency stack."""

__version__ = "0.1.0"
