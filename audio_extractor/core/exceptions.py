"""Custom exceptions for the audio extractor."""


class AudioExtractorError(Exception):
    """Base exception for all audio extractor errors."""

    def __init__(self, message: str, details: str = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DriveEnumerationError(AudioExtractorError):
    """Raised when the OS volume query fails."""


class DiscoveryError(AudioExtractorError):
    """Raised when a directory cannot be read during discovery."""

    def __init__(self, message: str, directory: str = None, details: str = None):
        super().__init__(message, details)
        self.directory = directory


class MetadataError(AudioExtractorError):
    """Raised when tags cannot be parsed from a file."""

    def __init__(self, message: str, file_path: str = None, details: str = None):
        super().__init__(message, details)
        self.file_path = file_path


class TranscodeError(AudioExtractorError):
    """Raised when an external transcoding process fails."""

    def __init__(
        self,
        message: str,
        file_path: str = None,
        returncode: int = None,
        details: str = None,
    ):
        super().__init__(message, details)
        self.file_path = file_path
        self.returncode = returncode


class WaveformError(AudioExtractorError):
    """Raised when waveform image rendering fails."""

    def __init__(self, message: str, file_path: str = None, details: str = None):
        super().__init__(message, details)
        self.file_path = file_path


class PreviewError(AudioExtractorError):
    """Raised when preview clip generation fails."""

    def __init__(self, message: str, file_path: str = None, details: str = None):
        super().__init__(message, details)
        self.file_path = file_path


class BatchItemUnexpectedError(AudioExtractorError):
    """Unhandled failure of a single item, caught at batch level."""

    def __init__(self, message: str, file_path: str = None, details: str = None):
        super().__init__(message, details)
        self.file_path = file_path


class StorageExhaustedError(AudioExtractorError):
    """Raised when the destination runs out of space. Fatal to the run."""

    def __init__(self, message: str, path: str = None, details: str = None):
        super().__init__(message, details)
        self.path = path
        # Partial run summary, set by the orchestrator before re-raising
        self.summary = None


class SummaryStoreError(AudioExtractorError):
    """Raised when run summaries cannot be written or read."""

    def __init__(self, message: str, path: str = None, details: str = None):
        super().__init__(message, details)
        self.path = path


class MissingArtistError(AudioExtractorError):
    """Raised at the catalog import boundary when no artist id is known."""

    def __init__(self, message: str, item_id: str = None, details: str = None):
        super().__init__(message, details)
        self.item_id = item_id


class EntryExportError(AudioExtractorError):
    """Raised when track entries cannot be written for the importer."""

    def __init__(self, message: str, path: str = None, details: str = None):
        super().__init__(message, details)
        self.path = path


class ConfigurationError(AudioExtractorError):
    """Raised when there are configuration issues."""

    def __init__(self, message: str, parameter: str = None, details: str = None):
        super().__init__(message, details)
        self.parameter = parameter
