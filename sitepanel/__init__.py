"""SitePanel: multi-tenant site-content management behind a role-based access gate."""
