from typing import List

from pydantic import BaseModel, ConfigDict, Field

from buildx_plugin.common.config.constants import RegistryType, DOCKER_ARTIFACT_KIND


class ArtifactImage(BaseModel):
    image: str
    digest: str


class ArtifactData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    registry_type: RegistryType = Field(alias="registryType")
    registry_url: str = Field(default="", alias="registryUrl")
    images: List[ArtifactImage] = Field(default_factory=list)


class DockerArtifact(BaseModel):
    kind: str = Field(default=DOCKER_ARTIFACT_KIND)
    data: ArtifactData

    @classmethod
    def for_tags(
        cls,
        registry_type: RegistryType,
        registry_url: str,
        repo: str,
        digest: str,
        tags: List[str],
    ) -> "DockerArtifact":
        images = [ArtifactImage(image=f"{repo}:{tag}", digest=digest) for tag in tags]
        return cls(
            data=ArtifactData(
                registry_type=registry_type,
                registry_url=registry_url,
                images=images,
            )
        )
