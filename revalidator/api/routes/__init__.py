"""HTTP routers exposed by the revalidation API."""

from . import metrics, ping, validations

__all__ = ["metrics", "ping", "validations"]
