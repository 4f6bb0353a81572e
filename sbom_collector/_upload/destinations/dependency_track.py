"""Dependency Track destination for BOM uploads.

Configuration via environment variables (DTRACK_* prefix):
    DTRACK_API_URL: Base URL of Dependency Track (required). We append
                    /api/v1/project and /api/v1/bom to this.
    DTRACK_API_KEY: API key for authentication (required)
    DTRACK_CLASSIFIER: Project classifier (default: APPLICATION)
    DTRACK_TIMEOUT: Request timeout in seconds (default: 120)

A project is identified by its name and a version derived from its tags, so
re-uploading the same repository updates the same project.
"""

import base64
import hashlib
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

import requests

from sbom_collector.http_client import create_session, get_default_headers
from sbom_collector.logging_config import logger

from ..protocol import DestinationConfig, UploadInput
from ..result import UploadResult

# Upload timeout in seconds
UPLOAD_TIMEOUT = 120

DEFAULT_CLASSIFIER = "APPLICATION"

# Dependency Track stores the description in a varchar(255)
DESCRIPTION_MAX_LENGTH = 255
CODE_OWNERS_PREFIX = "CODE OWNERS:\n"
NOREPLY_SUFFIX = "@users.noreply.github.com"


@dataclass
class DependencyTrackConfig(DestinationConfig):
    """
    Configuration for Dependency Track destination.

    Loaded from DTRACK_* prefixed environment variables.
    """

    ENV_PREFIX = "DTRACK"

    api_url: str
    api_key: str
    classifier: str = DEFAULT_CLASSIFIER
    timeout: int = UPLOAD_TIMEOUT

    @classmethod
    def from_env(cls) -> Optional["DependencyTrackConfig"]:
        """Load configuration from DTRACK_* environment variables."""
        api_key = cls._get_env("API_KEY")
        api_url = cls._get_env("API_URL")

        if not api_key or not api_url:
            return None

        return cls(
            api_url=api_url.rstrip("/"),
            api_key=api_key,
            classifier=cls._get_env("CLASSIFIER") or DEFAULT_CLASSIFIER,
            timeout=cls._get_env_int("TIMEOUT", UPLOAD_TIMEOUT),
        )

    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_url)


def project_version(name: str, tags: List[str]) -> str:
    """SHA-256 hex digest of the project's tags and name joined with "/"."""
    return hashlib.sha256("/".join([*tags, name]).encode("utf-8")).hexdigest()


def code_owners_description(code_owners: List[str]) -> str:
    """
    Render code owners into a project description that fits the column.

    When the full list is too long, non-ASCII and GitHub noreply addresses
    are dropped first, then the text is truncated.
    """
    description = CODE_OWNERS_PREFIX + "\n".join(code_owners)
    if len(description) <= DESCRIPTION_MAX_LENGTH:
        return description

    contributors = [owner for owner in code_owners if owner.isascii() and not owner.endswith(NOREPLY_SUFFIX)]
    description = CODE_OWNERS_PREFIX + "\n".join(contributors)
    return description[:DESCRIPTION_MAX_LENGTH]


def create_project_payload(input: UploadInput, classifier: str) -> Dict[str, Any]:
    return {
        "name": input.project_name,
        "tags": [{"name": tag} for tag in input.tags],
        "classifier": classifier.upper(),
        "description": code_owners_description(input.code_owners),
        "version": project_version(input.project_name, input.tags),
    }


def upload_bom_payload(input: UploadInput) -> Dict[str, str]:
    return {
        "projectName": input.project_name,
        "projectVersion": project_version(input.project_name, input.tags),
        "bom": base64.b64encode(input.bom_data.encode("utf-8")).decode("ascii"),
    }


class DependencyTrackDestination:
    """
    Destination for uploading BOMs to Dependency Track.

    An upload is two calls: create the project (an existing project answers
    409, which is fine), then upload the BOM into it. Both go through a
    session that retries throttled and failed requests with backoff.
    """

    def __init__(
        self,
        config: Optional[DependencyTrackConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Dependency Track destination.

        Args:
            config: Configuration object. If None, loads from environment.
            session: HTTP session. If None, creates one with retries.
        """
        self._config = config or DependencyTrackConfig.from_env()
        self._session = session or create_session()

    @property
    def name(self) -> str:
        return "dependency-track"

    def is_configured(self) -> bool:
        """Check if Dependency Track destination is configured."""
        return self._config is not None and self._config.is_configured()

    def upload(self, input: UploadInput) -> UploadResult:
        """
        Create the project and upload the BOM to Dependency Track.

        Args:
            input: UploadInput with the encoded BOM and project details

        Returns:
            UploadResult with the processing token if successful
        """
        if not self.is_configured() or self._config is None:
            return UploadResult.failure_result(
                destination_name=self.name,
                error_message="Dependency Track not configured (check DTRACK_* env vars)",
                project_name=input.project_name,
            )

        headers = get_default_headers(api_key=self._config.api_key, content_type="application/json")

        # Step 1: make sure the project exists
        project_url = f"{self._config.api_url}/api/v1/project"
        logger.info(f"Creating Dependency Track project: {input.project_name}")
        project_response = self._put(project_url, headers, create_project_payload(input, self._config.classifier))
        if isinstance(project_response, str):
            return UploadResult.failure_result(self.name, project_response, project_name=input.project_name)
        if project_response.status_code == 409:
            logger.debug(f"Dependency Track project {input.project_name} already exists")
        elif not project_response.ok:
            return UploadResult.failure_result(
                self.name,
                _error_message("Failed to create Dependency Track project", project_response),
                project_name=input.project_name,
            )

        # Step 2: upload the BOM
        bom_url = f"{self._config.api_url}/api/v1/bom"
        logger.info(f"Uploading BOM to Dependency Track project: {input.project_name}")
        response = self._put(bom_url, headers, upload_bom_payload(input))
        if isinstance(response, str):
            return UploadResult.failure_result(self.name, response, project_name=input.project_name)
        if not response.ok:
            return UploadResult.failure_result(
                self.name,
                _error_message("Failed to upload BOM to Dependency Track", response),
                project_name=input.project_name,
            )

        token = None
        metadata: Dict[str, Any] = {}
        try:
            metadata = response.json()
            token = metadata.get("token")
            if token:
                logger.info(f"Dependency Track upload token: {token}")
        except ValueError:
            logger.debug("Could not extract token from Dependency Track response")

        logger.info("BOM uploaded successfully to Dependency Track")
        return UploadResult.success_result(
            destination_name=self.name,
            project_name=input.project_name,
            token=token,
            metadata=metadata,
        )

    def _put(self, url: str, headers: Dict[str, str], payload: Dict[str, Any]) -> Union[requests.Response, str]:
        """PUT a JSON payload, returning the response or an error message."""
        assert self._config is not None
        try:
            return self._session.put(url, headers=headers, json=payload, timeout=self._config.timeout)
        except requests.exceptions.ConnectionError:
            return f"Failed to connect to Dependency Track at {self._config.api_url}"
        except requests.exceptions.Timeout:
            return "Request to Dependency Track timed out"
        except requests.exceptions.RequestException as e:
            return f"Request to Dependency Track failed: {e}"


def _error_message(prefix: str, response: requests.Response) -> str:
    err_msg = f"{prefix}. [{response.status_code}]"
    response_text = (response.text or "")[:500]
    if response_text:
        err_msg += f" - {response_text}"
    return err_msg
