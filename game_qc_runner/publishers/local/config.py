"""Configuration for the local artifact publisher."""

from pydantic import BaseModel


class LocalConfig(BaseModel):
    """Artifacts stay in the runs directory and are served by the runner."""

    base_url: str = "http://127.0.0.1:8080/artifacts"
