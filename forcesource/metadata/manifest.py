"""Reading and writing package.xml manifests."""
import os
import re
from typing import Dict, Iterable, List, NamedTuple

from forcesource.core.exceptions import ManifestParseError, XmlParseError
from forcesource.metadata.path_utils import replace_forward_slashes
from forcesource.utils.xml import metadata_tree


class ManifestEntry(NamedTuple):
    type: str
    name: str


def metadata_sort_key(name):
    sections = []
    for section in re.split("[.|-]", name):
        sections.append(metadata_sort_key_section(section))

    key = "_".join(sections)
    key = key.replace("_", "Z")

    return key


def metadata_sort_key_section(name):
    prefix = "5"

    # Sort namespace prefixed names last
    base_name = name
    if base_name.endswith("__c"):
        base_name = base_name[:-3]
    if "__" in base_name:
        prefix = "8"

    return prefix + name


def parse_manifest_entries(entries: str) -> List[ManifestEntry]:
    """Parse ``"ApexClass, CustomObject:Account"``; a bare type means all members."""
    if not entries:
        return []
    parsed = []
    for entry in entries.split(","):
        metadata_type, _, name = entry.partition(":")
        name = name.strip() or "*"
        parsed.append(ManifestEntry(metadata_type.strip(), replace_forward_slashes(name)))
    return parsed


def parse_manifest_file(path) -> Dict:
    """Read a package.xml into ``{"Package": {"types": [...], "version": ...}}``."""
    if not os.path.exists(path):
        raise ManifestParseError(f"Manifest {path} does not exist.")
    try:
        package = metadata_tree.parse(path)
    except XmlParseError as e:
        raise ManifestParseError(f"The manifest {path} is ill formatted: {e}") from e

    types = []
    for types_element in package.findall("types"):
        name = types_element.find("name")
        if name is None or not name.text:
            raise ManifestParseError(f"The manifest {path} is ill formatted; <name> is missing")
        members = [member.text for member in types_element.findall("members")]
        types.append({"name": name.text.strip(), "members": members})

    version = package.find("version")
    return {"Package": {"types": types, "version": version.text if version is not None else None}}


def manifest_entries_from_file(path) -> List[ManifestEntry]:
    manifest = parse_manifest_file(path)
    return [
        ManifestEntry(type_entry["name"], replace_forward_slashes(member))
        for type_entry in manifest["Package"]["types"]
        for member in type_entry["members"]
    ]


def manifest_from_entries(entries: Iterable[ManifestEntry], api_version, package_name=None) -> Dict:
    members_by_type: Dict[str, List[str]] = {}
    for entry in entries:
        members = members_by_type.setdefault(entry.type, [])
        member = entry.name.replace(os.sep, "/")
        if member not in members:
            members.append(member)
    return {
        "Package": {
            "types": [{"name": name, "members": members} for name, members in members_by_type.items()],
            "version": api_version,
            "fullName": package_name,
        }
    }


def render_manifest(manifest: Dict) -> str:
    """Serialize a manifest dict with types and members in metadata order."""
    package = metadata_tree.new_document("Package")
    if manifest["Package"].get("fullName"):
        package.append("fullName", manifest["Package"]["fullName"])
    for type_entry in sorted(manifest["Package"]["types"], key=lambda t: t["name"].upper()):
        types_element = package.append("types")
        for member in sorted(set(type_entry["members"]), key=metadata_sort_key):
            types_element.append("members", member)
        types_element.append("name", type_entry["name"])
    if manifest["Package"].get("version"):
        package.append("version", str(manifest["Package"]["version"]))
    return package.tostring(xml_declaration=True)


def create_manifest(path, entries: Iterable[ManifestEntry], api_version, package_name=None) -> str:
    """Write a package.xml listing ``entries`` and return its path."""
    manifest = manifest_from_entries(entries, api_version, package_name)
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(render_manifest(manifest))
    return path
