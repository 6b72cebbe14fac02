from typing import List, Union
from pathlib import Path
import json

from buildx_plugin.common.config.constants import METADATA_DIGEST_KEY, RegistryType
from buildx_plugin.common.config.logging_config import get_logger
from buildx_plugin.common.dto.artifact import DockerArtifact
from buildx_plugin.common.exceptions.build_exceptions import ArtifactWriteError, MetadataParseError
from buildx_plugin.common.utils.file_utils import write_file


logger = get_logger(__name__)


def get_digest(metadata_file: Union[str, Path]) -> str:
    metadata_file = str(metadata_file)

    try:
        with open(metadata_file, "r", encoding="utf-8") as f:
            metadata = json.load(f)
    except OSError as e:
        raise MetadataParseError(
            f"Unable to open the metadata file {metadata_file}: {e}",
            metadata_file=metadata_file,
            cause=e,
        )
    except json.JSONDecodeError as e:
        raise MetadataParseError(
            f"Unable to decode the metadata: {e}",
            metadata_file=metadata_file,
            cause=e,
        )

    if not isinstance(metadata, dict) or METADATA_DIGEST_KEY not in metadata:
        raise MetadataParseError(
            f"{METADATA_DIGEST_KEY} not found in metadata json",
            metadata_file=metadata_file,
        )

    digest = metadata[METADATA_DIGEST_KEY]
    if not isinstance(digest, str):
        raise MetadataParseError(
            f"Unable to parse {METADATA_DIGEST_KEY} from metadata json",
            metadata_file=metadata_file,
        )
    return digest


def write_artifact_file(
    registry_type: RegistryType,
    artifact_file: Union[str, Path],
    registry_url: str,
    repo: str,
    digest: str,
    tags: List[str],
) -> Path:
    artifact = DockerArtifact.for_tags(
        registry_type=registry_type,
        registry_url=registry_url,
        repo=repo,
        digest=digest,
        tags=tags,
    )
    content = json.dumps(artifact.model_dump(mode="json", by_alias=True), indent="\t")

    try:
        path = write_file(artifact_file, content, mode=0o644)
    except OSError as e:
        raise ArtifactWriteError(
            f"Failed to write plugin artifact file: {e}",
            path=str(artifact_file),
            cause=e,
        )

    logger.info(f"Artifact file written to {path} for {len(tags)} tags")
    return path
