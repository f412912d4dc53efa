from .proxy import SigningProxy, signature_from_activity

__all__ = ["SigningProxy", "signature_from_activity"]
