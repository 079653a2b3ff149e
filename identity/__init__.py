"""Commerce identity provider glue (customer lookup + local user mapping)."""

from .routes import identity_bp
from .shopify import CustomerProfile, ShopifyIdentityProvider

__all__ = ["identity_bp", "CustomerProfile", "ShopifyIdentityProvider"]
