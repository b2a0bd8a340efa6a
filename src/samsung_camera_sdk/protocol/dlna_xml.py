"""XML side of the Samsung DLNA (MobileLink) dialect.

SOAP envelope building, response body decoding, and DOM walks over the device
description, the vendor ``GetInformation`` answer and DIDL-Lite browse results.
All parsers return immutable values; element names are matched by local name
so the camera's inconsistent namespace prefixes do not matter.
"""

from __future__ import annotations

__all__ = [
    "BrowseListing",
    "CameraCapabilities",
    "CameraInfo",
    "DlnaMediaItem",
    "ServiceDescriptor",
    "build_soap_envelope",
    "decode_response_body",
    "extract_browse_result",
    "parse_browse_response",
    "parse_capabilities",
    "parse_device_description",
    "parse_didl",
]

import xml.etree.ElementTree as ET
from collections.abc import Iterable
from dataclasses import dataclass, field
from xml.sax.saxutils import escape

from ..exceptions import DlnaParseError

SOAP_ENVELOPE_NS = "http://schemas.xmlsoap.org/soap/envelope/"
SOAP_ENCODING_NS = "http://schemas.xmlsoap.org/soap/encoding/"

_FALLBACK_ENCODINGS = ("utf-8", "ascii", "latin-1", "utf-16")


# ==================== Values ====================


@dataclass(frozen=True)
class ServiceDescriptor:
    service_type: str = ""
    service_id: str = ""
    control_url: str = ""
    event_sub_url: str = ""
    scpd_url: str = ""

    @property
    def is_content_directory(self) -> bool:
        return "ContentDirectory" in self.service_type


@dataclass(frozen=True)
class CameraInfo:
    """Device description of a MobileLink camera."""

    friendly_name: str = "Samsung Camera"
    manufacturer: str = "Samsung"
    model_name: str = ""
    model_description: str = ""
    model_number: str = ""
    serial_number: str = ""
    udn: str = ""
    services: tuple[ServiceDescriptor, ...] = ()
    raw_xml: str = field(default="", repr=False)

    @property
    def content_directory(self) -> ServiceDescriptor | None:
        for service in self.services:
            if service.is_content_directory:
                return service
        return None


@dataclass(frozen=True)
class CameraCapabilities:
    """Answer of the vendor ``GetInformation`` action."""

    resolutions: tuple[tuple[int, int], ...] = ()
    flash_modes: tuple[str, ...] = ()
    default_flash: str = ""
    max_zoom: int = 0
    available_shots: int = 0
    high_quality_stream_url: str = ""
    low_quality_stream_url: str = ""
    raw_xml: str = field(default="", repr=False)


@dataclass(frozen=True)
class DlnaMediaItem:
    """One ``<item>`` of a DIDL-Lite listing.

    ``url``/``size``/``mime_type``/``resolution`` describe the primary resource,
    the ``<res>`` with the largest declared size.
    """

    id: str = ""
    title: str = ""
    url: str = ""
    thumbnail_url: str = ""
    mime_type: str = ""
    size: int = 0
    resolution: str = ""
    date: str = ""

    @property
    def is_video(self) -> bool:
        return "video" in self.mime_type.lower()


@dataclass(frozen=True)
class BrowseListing:
    """Direct children of one container."""

    items: tuple[DlnaMediaItem, ...] = ()
    containers: tuple[str, ...] = ()


# ==================== Helpers ====================


def _local(tag: str) -> str:
    """Strip ``{namespace}`` (and any leftover ``prefix:``) from a tag."""
    tag = tag.rsplit("}", 1)[-1]
    return tag.rsplit(":", 1)[-1]


def _text(element: ET.Element) -> str:
    return "".join(element.itertext()).strip()


def _to_int(text: str) -> int:
    try:
        return int(text)
    except ValueError:
        return 0


def _parse(xml: str, what: str) -> ET.Element:
    try:
        return ET.fromstring(xml.lstrip("\ufeff \t\r\n"))
    except ET.ParseError as e:
        raise DlnaParseError(f"Malformed {what} XML: {e}") from e


def decode_response_body(data: bytes) -> str:
    """Decode an HTTP body trying UTF-8, ASCII, Latin-1 and UTF-16 in order.

    Returns:
        First non-empty decoding, or an empty string
    """
    for encoding in _FALLBACK_ENCODINGS:
        try:
            text = data.decode(encoding)
        except UnicodeDecodeError:
            continue
        if text:
            return text
    return ""


def build_soap_envelope(action: str, namespace: str, arguments: Iterable[tuple[str, object]] = ()) -> str:
    """Build a SOAP 1.1 request body.

    Args:
        action: Action name, e.g. ``Browse``
        namespace: Service type the action belongs to
        arguments: ``(name, value)`` pairs, serialized in order

    Returns:
        Envelope text
    """
    args = "".join(f"\n      <{name}>{escape(str(value))}</{name}>" for name, value in arguments)
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f'<s:Envelope xmlns:s="{SOAP_ENVELOPE_NS}" s:encodingStyle="{SOAP_ENCODING_NS}">\n'
        "  <s:Body>\n"
        f'    <u:{action} xmlns:u="{namespace}">{args}\n'
        f"    </u:{action}>\n"
        "  </s:Body>\n"
        "</s:Envelope>\n"
    )


# ==================== Device description ====================


def _parse_service(element: ET.Element) -> ServiceDescriptor:
    fields = {_local(child.tag): _text(child) for child in element}
    return ServiceDescriptor(
        service_type=fields.get("serviceType", ""),
        service_id=fields.get("serviceId", ""),
        control_url=fields.get("controlURL", ""),
        event_sub_url=fields.get("eventSubURL", ""),
        scpd_url=fields.get("SCPDURL", ""),
    )


def parse_device_description(xml: str) -> CameraInfo:
    """Parse a UPnP device description.

    ``friendlyName`` and ``manufacturer`` keep their defaults when absent or empty.

    Raises:
        DlnaParseError: Document is not well-formed XML
    """
    root = _parse(xml, "device description")

    values: dict[str, str] = {}
    services: list[ServiceDescriptor] = []
    in_service: set[int] = set()

    for element in root.iter():
        name = _local(element.tag)
        if name == "service":
            services.append(_parse_service(element))
            in_service.update(id(child) for child in element.iter())
            continue
        if id(element) in in_service or name in values:
            continue
        if name in ("friendlyName", "manufacturer", "modelName", "modelDescription", "modelNumber", "serialNumber", "UDN"):
            values[name] = _text(element)

    defaults = CameraInfo()
    return CameraInfo(
        friendly_name=values.get("friendlyName") or defaults.friendly_name,
        manufacturer=values.get("manufacturer") or defaults.manufacturer,
        model_name=values.get("modelName", ""),
        model_description=values.get("modelDescription", ""),
        model_number=values.get("modelNumber", ""),
        serial_number=values.get("serialNumber", ""),
        udn=values.get("UDN", ""),
        services=tuple(services),
        raw_xml=xml,
    )


# ==================== GetInformation ====================


def parse_capabilities(xml: str) -> CameraCapabilities:
    """Parse the ``GetInformation`` SOAP response.

    Raises:
        DlnaParseError: Document is not well-formed XML
    """
    root = _parse(xml, "GetInformation")

    resolutions: list[tuple[int, int]] = []
    flash_modes: list[str] = []
    scalars: dict[str, str] = {}

    for element in root.iter():
        name = _local(element.tag)
        if name == "Resolution":
            dims = {_local(child.tag): _text(child) for child in element}
            if "Width" in dims and "Height" in dims:
                width, height = _to_int(dims["Width"]), _to_int(dims["Height"])
                resolutions.append((width, height))
        elif name == "Support":
            text = _text(element)
            if text:
                flash_modes.append(text)
        elif name in ("AVAILSHOTS", "MaxZoom", "Defaultflash", "QualityHighUrl", "QualityLowUrl"):
            scalars[name] = _text(element)

    return CameraCapabilities(
        resolutions=tuple(resolutions),
        flash_modes=tuple(flash_modes),
        default_flash=scalars.get("Defaultflash", ""),
        max_zoom=_to_int(scalars.get("MaxZoom", "")),
        available_shots=_to_int(scalars.get("AVAILSHOTS", "")),
        high_quality_stream_url=scalars.get("QualityHighUrl", ""),
        low_quality_stream_url=scalars.get("QualityLowUrl", ""),
        raw_xml=xml,
    )


# ==================== Browse ====================


def extract_browse_result(xml: str) -> str:
    """Text of the ``<Result>`` element of a Browse response.

    The DIDL-Lite document arrives XML-escaped inside ``<Result>``; ElementTree
    unescapes it.

    Returns:
        DIDL-Lite document, or an empty string when there is no ``<Result>``

    Raises:
        DlnaParseError: Envelope is not well-formed XML
    """
    root = _parse(xml, "Browse response")
    for element in root.iter():
        if _local(element.tag) == "Result":
            return "".join(element.itertext())
    return ""


def _parse_item(element: ET.Element) -> DlnaMediaItem:
    title = ""
    date = ""
    thumbnail_url = ""
    url = ""
    size = 0
    mime_type = ""
    resolution = ""

    for child in element.iter():
        name = _local(child.tag)
        if name == "title":
            if not title:
                title = _text(child)
        elif name == "date":
            date = _text(child)
        elif name == "albumArtURI":
            thumbnail_url = _text(child)
        elif name == "res":
            res_size = _to_int(child.get("size", ""))
            # Largest advertised resource is the full-resolution original
            if not url or res_size > size:
                url = _text(child)
                size = res_size
                mime_type = child.get("protocolInfo", "")
                resolution = child.get("resolution", "")

    return DlnaMediaItem(
        id=element.get("id", ""),
        title=title,
        url=url,
        thumbnail_url=thumbnail_url,
        mime_type=mime_type,
        size=size,
        resolution=resolution,
        date=date,
    )


def parse_didl(didl: str) -> BrowseListing:
    """Parse a DIDL-Lite listing into items and child container ids.

    Items with neither a title nor a resource URL are dropped.

    Raises:
        DlnaParseError: Document is not well-formed XML
    """
    if not didl.strip():
        return BrowseListing()

    root = _parse(didl, "DIDL-Lite")
    items: list[DlnaMediaItem] = []
    containers: list[str] = []

    for element in root.iter():
        name = _local(element.tag)
        if name == "item":
            item = _parse_item(element)
            if item.title or item.url:
                items.append(item)
        elif name == "container":
            container_id = element.get("id")
            if container_id is not None:
                containers.append(container_id)

    return BrowseListing(tuple(items), tuple(containers))


def parse_browse_response(xml: str) -> BrowseListing:
    """Parse a whole Browse SOAP response."""
    return parse_didl(extract_browse_result(xml))
