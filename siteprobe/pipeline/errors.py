"""Exception types raised by the probe pipeline."""

from __future__ import annotations


class SetupError(Exception):
    """A problem detected before a run starts. The run never begins."""

    code = "setup_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NoUrlsFound(SetupError):
    code = "no_urls_found"

    def __init__(self, message: str = "No valid URLs found in the file.") -> None:
        super().__init__(message)


class TooManyUrls(SetupError):
    code = "too_many_urls"

    def __init__(self, count: int, limit: int) -> None:
        super().__init__(
            f"Too many URLs ({count}). Please upload a file with no more than {limit} URLs."
        )
        self.count = count
        self.limit = limit


class UrlTooLong(SetupError):
    code = "url_too_long"

    def __init__(self, url: str, limit: int) -> None:
        super().__init__(f"URL exceeds {limit} characters: {url[:80]}...")
        self.url = url
        self.limit = limit


class InvalidFileType(SetupError):
    code = "invalid_file_type"

    def __init__(self, message: str = "Invalid file type. Please upload a .txt or .csv file.") -> None:
        super().__init__(message)


class FileTooLarge(SetupError):
    code = "file_too_large"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"File is too large ({size} bytes). Please upload a file smaller than {limit // (1024 * 1024)}MB."
        )
        self.size = size
        self.limit = limit


class ApiKeyRequired(SetupError):
    code = "api_key_required"

    def __init__(self, message: str = "Google API key is required. Please provide your API key.") -> None:
        super().__init__(message)


class InvalidUrls(SetupError):
    code = "invalid_urls"

    def __init__(self, urls: list[str]) -> None:
        super().__init__(f"Invalid URLs found: {', '.join(urls)}")
        self.urls = urls


class RunInProgress(SetupError):
    code = "run_in_progress"

    def __init__(self, run_id: str) -> None:
        super().__init__(f"Run {run_id} is still in progress")
        self.run_id = run_id


class NoResultsToExport(SetupError):
    code = "no_results"

    def __init__(self, message: str = "No results to export") -> None:
        super().__init__(message)


class ExportFailed(Exception):
    """The tabular export sink could not produce a file."""


class PageSpeedError(Exception):
    """A PageSpeed request failed; the message is what ends up on the FailureRecord."""


class InvalidRequest(PageSpeedError):
    def __init__(self) -> None:
        super().__init__("Invalid URL or API key")


class ApiKeyInvalidOrQuotaExceeded(PageSpeedError):
    def __init__(self) -> None:
        super().__init__("API key quota exceeded or invalid")


class RateLimited(PageSpeedError):
    def __init__(self) -> None:
        super().__init__("Too many requests. Please try again later.")
