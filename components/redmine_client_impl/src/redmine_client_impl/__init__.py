from redmine_client_impl.config import ClientConfig
from redmine_client_impl.redmine_impl import RedmineClient, Response, get_client

__all__ = ["ClientConfig", "RedmineClient", "Response", "get_client"]
