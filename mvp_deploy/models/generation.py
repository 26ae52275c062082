"""Container bundle data models."""

from typing import Literal

from pydantic import BaseModel, Field


class GeneratedFile(BaseModel):
    """A generated file."""

    path: str
    content: str
    file_type: Literal["source", "config", "build", "docs"] = "source"
    lines: int = 0

    def __init__(self, **data):
        super().__init__(**data)
        if self.lines == 0:
            self.lines = len(self.content.splitlines())

    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))


class ContainerBundle(BaseModel):
    """Everything Cloud Build needs to produce the service image."""

    service_name: str
    image_reference: str
    files: list[GeneratedFile] = Field(default_factory=list)

    @property
    def file_count(self) -> int:
        """Get total number of files."""
        return len(self.files)

    @property
    def total_bytes(self) -> int:
        return sum(f.size_bytes for f in self.files)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]
