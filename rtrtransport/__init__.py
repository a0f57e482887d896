"""TCP and SSH transport channels for the RPKI-to-Router protocol."""

__version__ = "0.1.0"
__all__ = ["transport", "tcp", "ssh"]