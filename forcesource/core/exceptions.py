class ForceSourceException(Exception):
    """ Base class for all forcesource Exceptions """

    pass


class ForceSourceUsageError(ForceSourceException):
    """ An exception thrown due to improper usage which should be resolvable by proper usage """

    pass


class ForceSourceFailure(ForceSourceException):
    """ An exception representing a failure such as a malformed metadata file or a refused org query """

    pass


class ConfigurationError(ForceSourceException):
    """ Raised when the metadata registry or a decomposition config is inconsistent """

    pass


class UnsupportedMetadataType(ConfigurationError):
    """ Raised when a metadata type name is not present in the registry """

    def __init__(self, metadata_name):
        super().__init__(f"Unsupported metadata type: {metadata_name}")
        self.metadata_name = metadata_name


class XmlParseError(ForceSourceFailure):
    """ Raised when a metadata file cannot be parsed.

    Carries one ``(line, message)`` diagnostic per problem reported by the parser.
    """

    def __init__(self, message="XML parse errors reported", diagnostics=None, path=None):
        super().__init__(message)
        self.message = message
        self.diagnostics = list(diagnostics or [])
        self.path = path

    def with_path(self, path):
        self.path = path
        return self

    def __str__(self):
        lines = [self.message if not self.path else f"{self.message} in {self.path}"]
        for line, message in self.diagnostics:
            lines.append(f"  line {line}: {message}")
        return "\n".join(lines)


class MissingContentError(ForceSourceFailure):
    """ Raised when a metadata file references a content file that does not exist """

    def __init__(self, path, remediation=None):
        message = f"Expected content file at {path} but none was found."
        if remediation:
            message = f"{message} {remediation}"
        super().__init__(message)
        self.path = path


class MissingMetadataFileError(ForceSourceFailure):
    """ Raised when a metadata file that must exist is missing """

    def __init__(self, path):
        super().__init__(f"Expected metadata file at {path} but none was found.")
        self.path = path


class AccessError(ForceSourceFailure):
    """ Raised when the org refuses a query, e.g. because a feature is not enabled """

    def __init__(self, message, error_code=None):
        super().__init__(message)
        self.error_code = error_code


class NonSourceTrackedOrgError(ForceSourceUsageError):
    """ Raised when source tracking is requested against an org that does not support it """

    def __init__(self, username=None):
        target = f"The org {username}" if username else "This org"
        super().__init__(
            f"{target} does not have source tracking enabled. "
            "Source tracking commands are only available for scratch orgs and sandboxes with source tracking."
        )
        self.username = username


class PathDoesNotExist(ForceSourceUsageError):
    """ Raised when a user supplied path is missing """

    def __init__(self, path):
        super().__init__(f"The path {path} does not exist.")
        self.path = path


class ManifestParseError(ForceSourceUsageError):
    """ Raised when a package.xml manifest is ill formatted """

    pass


class NoSourceFound(ForceSourceUsageError):
    """ Raised when there is nothing to convert """

    pass


class InvalidProjectError(ForceSourceUsageError):
    """ Raised when no valid sfdx-project.json can be found """

    pass


class UnexpectedFileFound(ForceSourceUsageError):
    """ Raised when a package directory holds a file that maps to no metadata type """

    def __init__(self, path):
        super().__init__(f"Unexpected file found in package directory: {path}")
        self.path = path


class InvalidPackageDirectory(ForceSourceUsageError):
    """ Raised when a configured package directory does not exist """

    def __init__(self, path):
        super().__init__(
            f"The path {path}, specified in sfdx-project.json, does not exist. "
            "Be sure this directory is included in your project root."
        )
        self.path = path
