"""Configuration for persisted alert broadcast sinks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class DeliveryMethod(Enum):
    """Supported alert broadcast methods."""
    HTTP_POST = "http_post"
    FILE_OUTPUT = "file_output"
    STDOUT = "stdout"


@dataclass(frozen=True)
class HttpDeliveryConfig:
    """Configuration for webhook delivery."""
    url: str
    method: str = "POST"
    headers: Optional[dict[str, str]] = None
    timeout_seconds: float = 5.0


@dataclass(frozen=True)
class FileDeliveryConfig:
    """Configuration for JSON-lines file delivery."""
    output_path: str
    create_dirs: bool = True


@dataclass(frozen=True)
class StdoutDeliveryConfig:
    """Configuration for stdout delivery."""
    format: str = "json"  # json, pretty


@dataclass(frozen=True)
class DeliveryDestination:
    """Single alert broadcast destination."""
    name: str
    method: DeliveryMethod
    config: Any  # HttpDeliveryConfig | FileDeliveryConfig | StdoutDeliveryConfig
    enabled: bool = True

    # Filtering options
    kinds_filter: Optional[list[str]] = None       # Only deliver specific event kinds
    severities_filter: Optional[list[str]] = None  # Only deliver specific severities

    def accepts(self, kind: str, severity: str) -> bool:
        if not self.enabled:
            return False
        if self.kinds_filter is not None and kind not in self.kinds_filter:
            return False
        if self.severities_filter is not None and severity not in self.severities_filter:
            return False
        return True


@dataclass(frozen=True)
class AlertDeliveryConfig:
    """Complete alert broadcast configuration."""
    destinations: list[DeliveryDestination] = field(default_factory=list)
    enabled: bool = True


def get_default_delivery_config() -> AlertDeliveryConfig:
    """No external sinks; persisted alerts only reach in-process listeners."""
    return AlertDeliveryConfig(destinations=[], enabled=True)


def create_http_destination(
    name: str,
    url: str,
    headers: Optional[dict[str, str]] = None,
    enabled: bool = True,
    **kwargs
) -> DeliveryDestination:
    """Create HTTP delivery destination."""
    return DeliveryDestination(
        name=name,
        method=DeliveryMethod.HTTP_POST,
        config=HttpDeliveryConfig(
            url=url,
            headers=headers or {},
            **kwargs
        ),
        enabled=enabled
    )


def create_file_destination(
    name: str,
    output_path: str,
    enabled: bool = True,
    **kwargs
) -> DeliveryDestination:
    """Create file delivery destination."""
    return DeliveryDestination(
        name=name,
        method=DeliveryMethod.FILE_OUTPUT,
        config=FileDeliveryConfig(output_path=output_path, **kwargs),
        enabled=enabled
    )


def create_stdout_destination(name: str = "stdout", format: str = "json") -> DeliveryDestination:
    """Create stdout delivery destination."""
    return DeliveryDestination(
        name=name,
        method=DeliveryMethod.STDOUT,
        config=StdoutDeliveryConfig(format=format),
    )
