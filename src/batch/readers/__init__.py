"""
File readers for uploaded exports.
"""

from .csv_reader import CSVReader, create_spark_session
from .file_reader import FileReader, is_delimited
from .spreadsheet_reader import SpreadsheetReader, cell_text
from .tabular import TabularData, TabularReadError

__all__ = [
    "CSVReader",
    "create_spark_session",
    "FileReader",
    "is_delimited",
    "SpreadsheetReader",
    "cell_text",
    "TabularData",
    "TabularReadError",
]
