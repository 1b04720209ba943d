"""Registry of metadata type definitions.

Type definitions are derived once from ``metadata_registry.yml`` and are
read only afterwards.
"""
import functools
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import yaml

from forcesource.decomposition.config import (
    DecomposedSubtypeConfig,
    DecompositionConfig,
    get_decomposition_config,
)

__location__ = os.path.dirname(os.path.realpath(__file__))

METADATA_FILE_EXT = "-meta.xml"
LWC_FOLDER_NAME = "lwc"

TYPES_WITH_STANDARD_MEMBERS = (
    "CustomObject",
    "CustomObjectTranslation",
    "StandardValueSet",
    "Settings",
)
TYPES_THAT_DO_NOT_SUPPORT_DELETES = (
    "Settings",
    "CustomObjectTranslation",
    "CustomFieldTranslation",
)
GLOBAL_METADATA_TYPES = ("CustomLabels",)
DECOMPOSABLE_TYPES = ("CustomObject", "CustomObjectTranslation", "Bot")
TYPES_WITH_VIRTUAL_CHILDREN = ("SharingRules",)


@dataclass
class TypeDefObj:
    metadata_name: str
    ext: Optional[str] = None
    has_content: bool = False
    default_directory: Optional[str] = None
    name_for_msgs: Optional[str] = None
    name_for_msgs_plural: Optional[str] = None
    binary: bool = False
    is_addressable: bool = True
    is_source_tracked: bool = True
    has_standard_members: bool = False
    delete_supported: bool = True
    in_folder: bool = False
    is_global: bool = False
    child_xml_names: List[str] = field(default_factory=list)
    parent: Optional["TypeDefObj"] = None
    folder_type_def: Optional["TypeDefObj"] = None
    decomposition_config: Optional[DecompositionConfig] = None

    def __repr__(self):
        return f"<TypeDefObj {self.metadata_name}>"


@functools.lru_cache(maxsize=None)
def load_catalog(path=None) -> dict:
    with open(
        path or os.path.join(__location__, "metadata_registry.yml"), "r", encoding="utf-8"
    ) as f_catalog:
        return yaml.safe_load(f_catalog)


def get_metadata_key(metadata_name, full_name):
    return f"{metadata_name}__{full_name}"


def _lower_first(s):
    return s[:1].lower() + s[1:]


def _singular(s):
    if not s.endswith("s"):
        return s
    truncate = 2 if s.endswith("ses") or s.endswith("shes") else 1
    return s[:-truncate]


def _spaced(name):
    return re.sub(r"([A-Z])", r" \1", name).strip()


def _plural(name):
    return f"{name}es" if name.endswith(("s", "x")) else f"{name}s"


def _subtype_ext(parent_name, xml_fragment_name):
    ext = _singular(_lower_first(xml_fragment_name))
    if parent_name == "CustomObjectTranslation":
        ext = f"{ext}Translation"
    return ext


def _entity_name_element(parent_name, xml_fragment_name):
    if parent_name == "CustomObjectTranslation":
        return "layout" if xml_fragment_name == "layouts" else "name"
    return "fullName"


class MetadataRegistry:
    """Lookup of type definitions by metadata name, file path and directory."""

    def __init__(self, catalog: dict = None):
        catalog = catalog or load_catalog()
        self.source_api_version = str(catalog.get("sourceApiVersion", ""))
        self.lightning_def_types = catalog.get("lightningDefTypes") or {}
        self.type_defs: Dict[str, TypeDefObj] = self._create_type_defs(catalog)
        self.type_directories = {
            t.default_directory for t in self.type_defs.values() if t.default_directory
        }
        self.type_defs_by_extension = {
            t.ext: t for t in self.type_defs.values() if t.ext is not None
        }

    # Construction

    def _create_type_defs(self, catalog):
        overrides = catalog.get("overrides") or {}
        type_defs = {}
        for info in catalog["metadataObjects"]:
            metadata_name = info["xmlName"]
            override = overrides.get(metadata_name) or {}
            child_xml_names = list(info.get("childXmlNames") or [])
            singular_name = metadata_name
            if child_xml_names and metadata_name.endswith("s"):
                singular_name = metadata_name[:-1]
            name_with_spaces = _spaced(singular_name)

            type_def = TypeDefObj(
                metadata_name,
                ext=override.get("ext", info.get("suffix")),
                has_content=override.get("hasContent", info.get("metaFile", False)),
                default_directory=override.get(
                    "defaultDirectory", info.get("directoryName")
                ),
                name_for_msgs=override.get("nameForMsgs", name_with_spaces),
                name_for_msgs_plural=override.get(
                    "nameForMsgsPlural", _plural(name_with_spaces)
                ),
                binary=override.get("contentIsBinary", False),
                child_xml_names=child_xml_names,
                has_standard_members=metadata_name in TYPES_WITH_STANDARD_MEMBERS,
                delete_supported=metadata_name not in TYPES_THAT_DO_NOT_SUPPORT_DELETES,
                is_global=metadata_name in GLOBAL_METADATA_TYPES,
                in_folder=info.get("inFolder", False),
            )
            if metadata_name == "CustomObjectTranslation":
                type_def.child_xml_names = ["CustomFieldTranslation"]
            type_defs[metadata_name] = type_def

            if type_def.in_folder:
                folder_name = f"{override.get('nameForFolder', metadata_name)}Folder"
                folder_type_def = TypeDefObj(
                    folder_name,
                    ext=f"{type_def.ext}Folder",
                    default_directory=type_def.default_directory,
                    name_for_msgs=f"{type_def.name_for_msgs} Folder",
                    name_for_msgs_plural=f"{type_def.name_for_msgs} Folders",
                    is_addressable=False,
                )
                folder_type_def.decomposition_config = get_decomposition_config(
                    folder_name
                )
                type_defs[folder_name] = folder_type_def
                type_def.folder_type_def = folder_type_def

        for info in catalog["metadataObjects"]:
            type_def = type_defs[info["xmlName"]]
            fragment_names = list(info.get("xmlFragmentNames") or [])
            decompositions = []
            if (
                type_def.metadata_name in DECOMPOSABLE_TYPES
                and type_def.child_xml_names
                and fragment_names
            ):
                decompositions = self._create_decompositions(type_def, fragment_names)
                self._add_virtual_type_defs(type_defs, type_def, fragment_names)
            elif type_def.metadata_name in TYPES_WITH_VIRTUAL_CHILDREN and fragment_names:
                self._add_virtual_type_defs(type_defs, type_def, fragment_names)
            type_def.decomposition_config = get_decomposition_config(
                type_def.metadata_name,
                in_folder=type_def.in_folder,
                is_global=type_def.is_global,
                is_empty_container=info.get("emptyContainer", False),
                decompositions=decompositions,
            )
        return type_defs

    @staticmethod
    def _create_decompositions(type_def, fragment_names):
        decompositions = []
        for metadata_name, fragment in zip(type_def.child_xml_names, fragment_names):
            decompositions.append(
                DecomposedSubtypeConfig(
                    metadata_name=metadata_name,
                    ext=_subtype_ext(type_def.metadata_name, fragment),
                    default_directory=type_def.default_directory
                    if type_def.is_global
                    else fragment,
                    has_standard_members=metadata_name == "CustomField",
                    is_addressable=type_def.metadata_name != "CustomObjectTranslation",
                    metadata_entity_name_element=_entity_name_element(
                        type_def.metadata_name, fragment
                    ),
                    xml_fragment_name=fragment,
                )
            )
        return decompositions

    @staticmethod
    def _add_virtual_type_defs(type_defs, parent, fragment_names):
        for metadata_name, fragment in zip(parent.child_xml_names, fragment_names):
            if metadata_name in type_defs:
                continue
            name_for_msgs = _spaced(metadata_name)
            virtual = TypeDefObj(
                metadata_name,
                parent=parent,
                ext=_subtype_ext(parent.metadata_name, fragment),
                default_directory=fragment,
                has_standard_members=metadata_name == "CustomField",
                is_addressable=parent.metadata_name != "CustomObjectTranslation",
                is_source_tracked=parent.metadata_name != "CustomObjectTranslation",
                name_for_msgs=name_for_msgs,
                name_for_msgs_plural=_plural(name_for_msgs),
                delete_supported=metadata_name not in TYPES_THAT_DO_NOT_SUPPORT_DELETES,
            )
            virtual.decomposition_config = get_decomposition_config(metadata_name)
            type_defs[metadata_name] = virtual

    # Lookups

    @staticmethod
    def get_metadata_file_ext():
        return METADATA_FILE_EXT

    def get_type_definition_by_metadata_name(self, metadata_name) -> Optional[TypeDefObj]:
        type_def = self.type_defs.get(metadata_name)
        if type_def is None and metadata_name.endswith("Settings"):
            # retrieves name settings after the feature, e.g. AccountSettings
            type_def = self.type_defs.get("Settings")
        if type_def is None and metadata_name.endswith("CustomLabel"):
            type_def = self.type_defs.get("CustomLabels")
        return type_def

    def get_type_definitions_by_directory_name(self, name) -> List[TypeDefObj]:
        return [t for t in self.type_defs.values() if t.default_directory == name]

    def get_decomposition_by_name(self, metadata_name) -> Optional[DecomposedSubtypeConfig]:
        for type_def in self.type_defs.values():
            config = type_def.decomposition_config
            if config is None:
                continue
            for decomposition in config.decompositions:
                if decomposition.metadata_name == metadata_name:
                    return decomposition
        return None

    def is_supported(self, metadata_name) -> bool:
        if self.get_type_definition_by_metadata_name(metadata_name) is not None:
            return True
        decomposition = self.get_decomposition_by_name(metadata_name)
        return decomposition is not None and decomposition.is_addressable

    def get_lightning_def_by_file_name(self, file_name) -> Optional[dict]:
        for def_type, lightning_def in self.lightning_def_types.items():
            if file_name.endswith(lightning_def["fileSuffix"]):
                return dict(lightning_def, defType=def_type)
        return None

    def is_valid_aura_suffix(self, suffix) -> bool:
        return any(d["fileSuffix"] == suffix for d in self.lightning_def_types.values())

    def get_type_definition_by_file_name(
        self, file_path, use_true_ext_type=False, project_root=None
    ) -> Optional[TypeDefObj]:
        if not file_path:
            return None
        workspace_path = file_path
        if project_root and file_path.startswith(project_root):
            workspace_path = file_path[len(project_root) :]
        sep = os.sep

        def in_dir(directory):
            return f"{sep}{directory}{sep}" in workspace_path

        if in_dir("aura"):
            return self.type_defs["AuraDefinitionBundle"]
        if in_dir("waveTemplates"):
            return self.type_defs["WaveTemplateBundle"]
        if in_dir(self.type_defs["ExperienceBundle"].default_directory):
            return self.type_defs["ExperienceBundle"]
        if in_dir(LWC_FOLDER_NAME):
            return self.type_defs["LightningComponentBundle"]
        if in_dir(self.type_defs["CustomSite"].default_directory):
            return self.type_defs["CustomSite"]

        custom_object = self.type_defs["CustomObject"]
        if os.path.basename(workspace_path) == custom_object.ext + METADATA_FILE_EXT:
            return custom_object

        type_def = self._type_def_with_non_standard_extension(workspace_path)
        if type_def is not None:
            return type_def

        if workspace_path.endswith(METADATA_FILE_EXT):
            workspace_path = workspace_path[: workspace_path.index(METADATA_FILE_EXT)]
        type_extension = os.path.splitext(workspace_path)[1]
        if not type_extension:
            return None
        type_extension = type_extension[1:]

        default_directory = next(
            (
                part
                for part in os.path.dirname(workspace_path).split(sep)
                if part and part in self.type_directories
            ),
            None,
        )
        type_def = None
        if default_directory:
            type_def = next(
                (
                    t
                    for t in self.type_defs.values()
                    if t.ext == type_extension and t.default_directory == default_directory
                ),
                None,
            )
        if type_def is None:
            type_def = self.type_defs_by_extension.get(type_extension)
        if type_def is None:
            return None
        if not use_true_ext_type and type_def.parent is not None:
            return type_def.parent
        return type_def

    # Documents and static resources do not carry their type in the extension.

    def _type_def_with_non_standard_extension(self, file_name):
        candidates = [self.type_defs["Document"], self.type_defs["StaticResource"]]
        type_def = self._type_def_with_coresident_metadata_file(
            file_name, candidates, recurse=False
        )
        if type_def is None:
            type_def = self._type_def_with_coresident_metadata_file(
                os.path.dirname(file_name), [self.type_defs["StaticResource"]], recurse=True
            )
        if type_def is None:
            type_def = self._type_def_matching_default_directory(
                file_name, False, candidates
            )
        return type_def

    def _type_def_with_coresident_metadata_file(self, file_name, candidates, recurse):
        directory = os.path.dirname(file_name)
        if _is_dir_path_expended(directory):
            return None
        full_name = os.path.splitext(os.path.basename(file_name))[0]
        for type_def in candidates:
            meta = os.path.join(directory, f"{full_name}.{type_def.ext}{METADATA_FILE_EXT}")
            if os.path.exists(meta):
                return type_def
        if recurse:
            return self._type_def_with_coresident_metadata_file(
                directory, candidates, recurse=True
            )
        return None

    def _type_def_matching_default_directory(self, file_name, is_directory, candidates):
        directory = os.path.dirname(file_name)
        if _is_dir_path_expended(directory):
            return None
        document = self.type_defs["Document"]
        static_resource = self.type_defs["StaticResource"]
        if document in candidates and not is_directory:
            parts = file_name.split(os.sep)
            if len(parts) >= 3 and parts[-3] == document.default_directory:
                return document
        if static_resource in candidates:
            if is_directory and os.path.basename(file_name) == static_resource.default_directory:
                return static_resource
            return self._type_def_matching_default_directory(
                directory, True, [static_resource]
            )
        return None


def _is_dir_path_expended(directory):
    return (
        not directory
        or directory == "."
        or directory == os.path.abspath(os.sep)
        or os.path.dirname(directory) == directory
    )
