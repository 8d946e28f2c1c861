"""BlockHaven - quote and order lifecycle engine for a crypto exchange storefront."""

__version__ = "0.1.0"
