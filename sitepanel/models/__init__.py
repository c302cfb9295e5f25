# Import every model so relationship() string targets resolve regardless of import order.
from sitepanel.models.accounts import Profile
from sitepanel.models.sites import ContentSection, Site

__all__ = ["Profile", "Site", "ContentSection"]
