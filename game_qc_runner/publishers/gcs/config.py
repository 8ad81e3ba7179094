"""Configuration for the Google Cloud Storage publisher."""

from pydantic import BaseModel, Field, SecretStr


class GCSConfig(BaseModel):
    """Configuration for the Google Cloud Storage publisher."""

    bucket: str
    access_token: SecretStr
    prefix: str = "runner/runs"
    api_base_url: str = "https://storage.googleapis.com"
    public_base_url: str = "https://storage.googleapis.com"
    max_concurrent_uploads: int = Field(default=8, ge=1)
