"""
Pipeline Domain Models

Pydantic models for type safety and validation across the pipeline.
These models ensure data integrity and provide clear interfaces.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_CLOUDFLARE_API = "https://api.cloudflare.com/client/v4"


class EndpointSpec(BaseModel):
    """One upstream resource to sync and the module file it becomes."""
    name: str = Field(..., pattern=r"^[A-Za-z0-9-]+$", description="Endpoint name (kebab-case), drives the export identifier")
    source_path: str = Field(..., description="URL path appended verbatim to the API base URL")
    output_file: str = Field(..., pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$", description="Generated module file name, also the KV key")

    model_config = ConfigDict(frozen=True)


class ApiSettings(BaseModel):
    """Upstream API coordinates."""
    base_url: str = Field(..., description="API base URL, e.g. http://localhost:3001")
    auth_token: Optional[str] = Field(None, repr=False, description="Bearer token for the upstream API")
    timeout_s: float = Field(default=10.0, gt=0, description="Request timeout in seconds")

    model_config = ConfigDict(frozen=True)


class CdnTarget(BaseModel):
    """Key-value namespace that backs the CDN edge."""
    api_token: Optional[str] = Field(None, repr=False, description="Cloudflare API token")
    account_id: Optional[str] = Field(None, description="Cloudflare account ID")
    namespace_id: Optional[str] = Field(None, description="KV namespace ID")
    public_domain: Optional[str] = Field(None, description="Domain serving the namespace publicly")
    api_base_url: str = Field(default=DEFAULT_CLOUDFLARE_API, description="Cloudflare API root")
    upload_timeout_s: float = Field(default=30.0, gt=0, description="Upload timeout in seconds")
    check_timeout_s: float = Field(default=10.0, gt=0, description="Accessibility check timeout in seconds")

    model_config = ConfigDict(frozen=True)

    def missing_fields(self) -> list[str]:
        """Names of required coordinates that are unset or blank."""
        required = {
            "api_token": self.api_token,
            "account_id": self.account_id,
            "namespace_id": self.namespace_id,
            "public_domain": self.public_domain,
        }
        return [name for name, value in required.items() if not value]

    def value_url(self, key: str) -> str:
        return (
            f"{self.api_base_url}/accounts/{self.account_id}"
            f"/storage/kv/namespaces/{self.namespace_id}/values/{key}"
        )

    def public_url(self, key: str) -> str:
        return f"https://{self.public_domain}/{key}"


class DeploymentRecord(BaseModel):
    """Result of uploading one module to the KV namespace."""
    key: str
    byte_size: int = Field(..., ge=0)
    public_url: str
    succeeded: bool = True

    model_config = ConfigDict(frozen=True)


class AccessCheckResult(BaseModel):
    """Advisory outcome of fetching a published module over the public domain."""
    success: bool
    url: str
    status: Optional[int] = None
    byte_size: Optional[int] = None
    content_type: Optional[str] = None
    detail: Optional[str] = None

    model_config = ConfigDict(frozen=True)
