"""
In-memory table produced by the file readers.
"""


class TabularReadError(Exception):
    """Raised when an uploaded file cannot be read as a table."""
    pass


class TabularData:
    """
    Header row plus data rows of an uploaded file, all values as text.

    Attributes:
        headers: Header cells as found in the file
        rows: Data rows in file order (blank rows already removed)
        source: File path or sheet the table came from
    """

    def __init__(self, headers: list[str], rows: list[list[str]], source: str | None = None):
        self.headers = headers
        self.rows = rows
        self.source = source

    def __len__(self) -> int:
        return len(self.rows)

    def __repr__(self) -> str:
        return f"TabularData(source={self.source!r}, columns={len(self.headers)}, rows={len(self.rows)})"
