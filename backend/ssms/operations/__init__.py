"""Operation definitions executed through ``ssms.services.gateway.Gateway``."""
