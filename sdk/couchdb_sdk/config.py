"""
Configuration for the CouchDB SDK.

Uses pydantic-settings for environment variable loading.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client configuration loaded from environment."""

    # CouchDB server
    url: str = Field(default="http://localhost:5984", description="CouchDB base URL")

    # HTTP transport
    timeout: float = Field(default=30.0, description="Request timeout seconds")
    verify_tls: bool = Field(default=True, description="Verify server TLS certificates")

    model_config = {"env_prefix": "COUCHDB_"}
